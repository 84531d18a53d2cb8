"""End-to-end test runner adapter.

Two modes against a base URL:

- dev server: ``npm run test:e2e:run`` starts the local dev server and runs
  the suite against it;
- deployed: ``npx cypress run`` against the live endpoint.

Invocations share nothing but the project directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stagectl.infrastructure.process import run_command
from stagectl.services.base import BaseService
from stagectl.services.provision import LOCAL_TEST_SCRIPT

logger = logging.getLogger(__name__)

BASE_URL_ENV_VAR = "CYPRESS_BASE_URL"


class E2ERunner(BaseService):
    """Drives the browser test suite."""

    def test_command(self, *, dev_server: bool, headless: bool) -> list[str]:
        if dev_server:
            # headless mode is baked into the script by the provisioner
            return [self._commands.npm, "run", LOCAL_TEST_SCRIPT]
        return [self._commands.npx, "cypress", "run", "--headless" if headless else "--headed"]

    def run_tests(
        self,
        project_dir: Path,
        base_url: str,
        *,
        dev_server: bool,
        headless: bool | None = None,
    ) -> None:
        """Run the suite against *base_url*.

        Raises:
            ProcessFailure: The suite reported failures or could not start.
        """
        if headless is None:
            headless = self._settings.e2e.headless
        mode = "development" if dev_server else "production"
        stage = "testing_local" if dev_server else "testing_remote"
        logger.info("Running e2e tests (%s) against %s", mode, base_url)
        run_command(
            self.test_command(dev_server=dev_server, headless=headless),
            cwd=project_dir,
            env={BASE_URL_ENV_VAR: base_url},
            stage=stage,
            failure_message=f"E2E tests failed in {mode}",
        )
