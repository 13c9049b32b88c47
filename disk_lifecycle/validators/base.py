"""
Disk Lifecycle - Base Validator

This module provides the base class for all validators.
Each validator checks one thing and returns pass/fail.

Pattern: Create a new validator by inheriting from BaseValidator
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from disk_lifecycle.orchestration.state import WorkflowParams


@dataclass
class ValidationResult:
    """
    Result from a single validation check.

    Attributes:
        validator_name: Name of the validator (for display)
        passed: True if validation passed, False if failed
        message: Human-readable message about the result
        details: Optional dict with extra info (e.g. a 'fix' hint)
    """
    validator_name: str
    passed: bool
    message: str
    details: Optional[dict] = None

    def __str__(self):
        """String representation of result."""
        status = "[OK]" if self.passed else "[X]"
        return f"{status} {self.validator_name}: {self.message}"


class ValidationResults:
    """
    Collection of validation results.

    Makes it easy to check if all validations passed and report failures.
    """

    def __init__(self):
        """Initialize empty results."""
        self.results: List[ValidationResult] = []

    def add(self, result: ValidationResult):
        """Add a validation result."""
        self.results.append(result)

    def all_passed(self) -> bool:
        """Check if all validations passed."""
        return all(r.passed for r in self.results)

    def get_failures(self) -> List[ValidationResult]:
        """Get only failed validations."""
        return [r for r in self.results if not r.passed]

    def format_failures(self) -> str:
        """Failed validations with fix hints, one block per failure."""
        lines = []
        for result in self.get_failures():
            lines.append(f"  [X] {result.validator_name}")
            lines.append(f"    {result.message}")
            if result.details and 'fix' in result.details:
                lines.append(f"    Fix: {result.details['fix']}")
        return "\n".join(lines)


class BaseValidator(ABC):
    """
    Base class for all validators.

    To create a new validator:
    1. Inherit from this class
    2. Implement the validate() method
    3. Implement the name property

    Example:
        class MyValidator(BaseValidator):
            @property
            def name(self):
                return "My Check"

            def validate(self):
                if self.params.initial_size_gb > 0:
                    return self._pass("Size is positive")
                return self._fail("Size must be positive", fix="Use --size 10")
    """

    def __init__(self, params: WorkflowParams, client=None):
        """
        Initialize validator.

        Args:
            params: Workflow parameters to validate
            client: Cloud client, for validators that look at live resources
        """
        self.params = params
        self.client = client

    @abstractmethod
    def validate(self) -> ValidationResult:
        """
        Run the validation check.

        Returns:
            ValidationResult with pass/fail and message
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Human-readable name of this validator.

        Used for display in validation results.
        """
        pass

    def _pass(self, message: str, **details) -> ValidationResult:
        return ValidationResult(self.name, True, message, details or None)

    def _fail(self, message: str, **details) -> ValidationResult:
        return ValidationResult(self.name, False, message, details or None)


class ValidationRunner:
    """
    Runs multiple validators and collects results.

    Example:
        runner = ValidationRunner()
        runner.add(ResourceNameValidator(params))
        runner.add(DiskSizeValidator(params))

        results = runner.run_all(logger)

        if not results.all_passed():
            print(results.format_failures())
    """

    def __init__(self):
        """Initialize empty validator list."""
        self.validators: List[BaseValidator] = []

    def add(self, validator: BaseValidator):
        """
        Add a validator to the chain.

        Args:
            validator: A validator instance
        """
        self.validators.append(validator)

    def run_all(self, logger=None) -> ValidationResults:
        """
        Run all validators and collect results.

        Args:
            logger: Optional logger for debug output

        Returns:
            ValidationResults with all results
        """
        results = ValidationResults()

        for validator in self.validators:
            if logger:
                logger.debug(f"Running validator: {validator.name}")

            result = validator.validate()

            if logger:
                status = "PASS" if result.passed else "FAIL"
                logger.debug(f"  {status}: {result.message}")

            results.add(result)

        return results
