#!/usr/bin/env python3
"""
Standard exit codes for the curriculum command line utilities.

- Codes 1-2: configuration/input problems, fixable by user
- Code 3: runtime errors (e.g. requisite cycles), require log analysis
- Code 4: requisite data could not be fetched, can retry later
- Code 5: filesystem problems, check access permissions
"""

EXIT_SUCCESS = 0  # Successful execution
EXIT_CONFIG_ERROR = 1  # Broken config.toml, invalid data source URL
EXIT_INPUT_ERROR = 2  # Missing plan file, plan or requisite data failing validation
EXIT_RUNTIME_ERROR = 3  # Unexpected failures while resolving or computing metrics
EXIT_NETWORK_ERROR = 4  # Requisite data or metadata fetch failed
EXIT_IO_ERROR = 5  # Output write errors, directory access issues

# Readable names (for logging)
EXIT_CODE_NAMES = {
    EXIT_SUCCESS: "SUCCESS",
    EXIT_CONFIG_ERROR: "CONFIG_ERROR",
    EXIT_INPUT_ERROR: "INPUT_ERROR",
    EXIT_RUNTIME_ERROR: "RUNTIME_ERROR",
    EXIT_NETWORK_ERROR: "NETWORK_ERROR",
    EXIT_IO_ERROR: "IO_ERROR",
}

EXIT_CODE_DESCRIPTIONS = {
    EXIT_SUCCESS: "Successful execution",
    EXIT_CONFIG_ERROR: "Configuration errors",
    EXIT_INPUT_ERROR: "Input data errors",
    EXIT_RUNTIME_ERROR: "Runtime errors",
    EXIT_NETWORK_ERROR: "Requisite data unavailable",
    EXIT_IO_ERROR: "Filesystem errors",
}


def get_exit_code_name(code: int) -> str:
    """Readable name for an exit code, 'UNKNOWN(n)' for unknown codes."""
    return EXIT_CODE_NAMES.get(code, f"UNKNOWN({code})")


def get_exit_code_description(code: int) -> str:
    return EXIT_CODE_DESCRIPTIONS.get(code, f"Unknown exit code: {code}")


def log_exit(logger, code: int, message: str = None) -> None:
    """
    Logs exit code with optional message.

    Args:
        logger: Logger object
        code: Exit code
        message: Additional message (optional)
    """
    code_name = get_exit_code_name(code)
    suffix = f" - {message}" if message else ""

    if code == EXIT_SUCCESS:
        logger.info(f"Exit: {code_name}{suffix}")
    else:
        logger.error(f"Exit with error: {code_name} ({get_exit_code_description(code)}){suffix}")
