"""
procgraph Configuration.

Configuration dataclass and environment variable support for process graph
builders. A root builder reads its configuration once; child builders created
for callbacks share the configuration of their parent.
"""

from dataclasses import dataclass, field
import os


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_ID_STEM_LENGTH = 6
DEFAULT_ARRAY_ELEMENT_PROCESS = "array_element"
DEFAULT_ARRAY_CREATE_PROCESS = "array_create"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUE_VALUES


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class BuilderConfig:
    """Configuration for process graph builders.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a value-object.
    ::: This is stateless.

    Supports environment variables:
    - PROCGRAPH_ID_STEM_LENGTH: Characters kept from a process id for node ids (default: 6)
    - PROCGRAPH_STRICT_ARRAY_ACCESS: Raise instead of warn on writes to array accessors (default: false)
    - PROCGRAPH_ARRAY_ELEMENT_PROCESS: Process used for array access by label/index (default: array_element)
    - PROCGRAPH_ARRAY_CREATE_PROCESS: Process wrapping list results of callbacks (default: array_create)
    """

    id_stem_length: int = field(default_factory=lambda: int(os.environ.get(
        "PROCGRAPH_ID_STEM_LENGTH", DEFAULT_ID_STEM_LENGTH
    )))
    strict_array_access: bool = field(default_factory=lambda: _env_flag("PROCGRAPH_STRICT_ARRAY_ACCESS"))
    array_element_process: str = field(default_factory=lambda: os.environ.get(
        "PROCGRAPH_ARRAY_ELEMENT_PROCESS", DEFAULT_ARRAY_ELEMENT_PROCESS
    ))
    array_create_process: str = field(default_factory=lambda: os.environ.get(
        "PROCGRAPH_ARRAY_CREATE_PROCESS", DEFAULT_ARRAY_CREATE_PROCESS
    ))

    def validate(self) -> list[str]:
        """Validate configuration and return list of problems."""
        problems = []

        if self.id_stem_length < 1:
            problems.append(f"Id stem length {self.id_stem_length} must be at least 1")

        if not self.array_element_process:
            problems.append("Array element process id must not be empty")

        if not self.array_create_process:
            problems.append("Array create process id must not be empty")

        return problems

    @classmethod
    def from_env(cls) -> "BuilderConfig":
        """Create configuration from environment variables."""
        return cls()

    @classmethod
    def for_testing(cls, strict_array_access: bool = False) -> "BuilderConfig":
        """Create configuration for testing, independent of the environment."""
        return cls(
            id_stem_length=DEFAULT_ID_STEM_LENGTH,
            strict_array_access=strict_array_access,
            array_element_process=DEFAULT_ARRAY_ELEMENT_PROCESS,
            array_create_process=DEFAULT_ARRAY_CREATE_PROCESS,
        )
