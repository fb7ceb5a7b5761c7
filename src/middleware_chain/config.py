"""
Build Configuration.

Configuration dataclass and environment variable support for a build pass.
Descriptor-level settings (global hooks, folder name, runtime) are modelled
separately in ``models.py``.
"""

from dataclasses import dataclass, field
import os


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_MAX_WORKERS = 4
DEFAULT_IMPORT_BASE = ".."


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class BuildConfig:
    """Build pass configuration.

    Environment variables:
    - MIDDLEWARE_CHAIN_MAX_WORKERS: Functions built concurrently (default: 4)
    - MIDDLEWARE_CHAIN_IMPORT_BASE: Path from the artifact folder to the
      service root, used by path-based module loading (default: "..")
    - MIDDLEWARE_CHAIN_VALIDATE_OUTPUT: Compile-check generated source
      (default: true)
    """

    max_workers: int = field(default_factory=lambda: int(os.environ.get(
        "MIDDLEWARE_CHAIN_MAX_WORKERS", DEFAULT_MAX_WORKERS
    )))
    import_base: str = field(default_factory=lambda: os.environ.get(
        "MIDDLEWARE_CHAIN_IMPORT_BASE", DEFAULT_IMPORT_BASE
    ))
    validate_output: bool = field(default_factory=lambda: _env_bool(
        "MIDDLEWARE_CHAIN_VALIDATE_OUTPUT", "true"
    ))

    def validate(self) -> list[str]:
        """Validate configuration and return list of warnings."""
        warnings = []

        if self.max_workers < 1:
            warnings.append(f"max_workers {self.max_workers} is below 1, builds will run one at a time")

        if os.path.isabs(self.import_base):
            warnings.append(
                f"import_base {self.import_base!r} is absolute, artifacts will not be relocatable"
            )

        if not self.validate_output:
            warnings.append("Generated source will not be compile-checked")

        return warnings

    @property
    def effective_workers(self) -> int:
        return max(1, self.max_workers)
