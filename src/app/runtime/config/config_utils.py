"""Environment variable handling for config.yaml."""

import os
import re

from loguru import logger

# ${VAR}, ${VAR:-default} or ${VAR:?message}
_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def apply_environment_overrides(env_mode: str) -> list[str]:
    """Promote ``{ENV_MODE}_*`` variables to their unprefixed names.

    ``PRODUCTION_STORAGE_BACKEND=redis`` sets ``STORAGE_BACKEND=redis`` when
    running with APP_ENVIRONMENT=production.

    Returns:
        Names of the variables that were set
    """
    prefix = f"{env_mode.upper()}_"
    promoted = {
        name.removeprefix(prefix): value
        for name, value in os.environ.items()
        if name.startswith(prefix)
    }
    os.environ.update(promoted)
    for name in promoted:
        logger.debug(f"{name} taken from {prefix}{name}")
    return list(promoted)


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message

    Whole-line YAML comments are left untouched.
    """

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)

        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = os.getenv(var_name)
            if value is None:
                raise ValueError(f"Required environment variable {var_name}: {error_msg}")
            return value

        value = os.getenv(var_expr)
        if value is None:
            raise ValueError(f"Required environment variable {var_expr} not set")
        return value

    return "".join(
        line if line.lstrip().startswith("#") else _PLACEHOLDER.sub(replacer, line)
        for line in text.splitlines(keepends=True)
    )
