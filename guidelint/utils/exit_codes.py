"""Centralized exit codes for the guidelint CLI."""


class ExitCodes:
    """Standard exit codes for guidelint commands."""

    SUCCESS = 0

    FINDINGS = 1

    TASK_INCOMPLETE = 3

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get human-readable description for an exit code."""
        descriptions = {
            cls.SUCCESS: "Success - No issues found",
            cls.FINDINGS: "Guideline violations detected",
            cls.TASK_INCOMPLETE: "Some source files could not be read or parsed",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")

