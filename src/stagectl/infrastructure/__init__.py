"""Infrastructure layer — subprocess, filesystem, package.json, and cloud inventory access."""
