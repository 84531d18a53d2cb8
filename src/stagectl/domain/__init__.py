"""Domain layer — identity, lifecycle states, errors, and the deployment manifest.

Pure logic with no subprocess or cloud access.
"""
