"""
Utilities shared by the curriculum engine and its command line tools.

- Configuration loading
- JSON Schema validation and plan invariants
- Exit codes
- Console encoding setup
"""

from .config import ConfigValidationError, load_config
from .console_encoding import setup_console_encoding
from .exit_codes import (EXIT_CONFIG_ERROR, EXIT_INPUT_ERROR, EXIT_IO_ERROR,
                         EXIT_NETWORK_ERROR, EXIT_RUNTIME_ERROR, EXIT_SUCCESS,
                         get_exit_code_description, get_exit_code_name,
                         log_exit)
from .validation import (GraphInvariantError, RequisiteDataError,
                         ValidationError, validate_json,
                         validate_plan_invariants,
                         validate_requisite_expression,
                         validate_requisite_table)

__all__ = [
    # config
    "load_config",
    "ConfigValidationError",
    # validation
    "ValidationError",
    "GraphInvariantError",
    "RequisiteDataError",
    "validate_json",
    "validate_plan_invariants",
    "validate_requisite_table",
    "validate_requisite_expression",
    # exit_codes
    "EXIT_SUCCESS",
    "EXIT_CONFIG_ERROR",
    "EXIT_INPUT_ERROR",
    "EXIT_RUNTIME_ERROR",
    "EXIT_NETWORK_ERROR",
    "EXIT_IO_ERROR",
    "get_exit_code_name",
    "get_exit_code_description",
    "log_exit",
    # console_encoding
    "setup_console_encoding",
]
