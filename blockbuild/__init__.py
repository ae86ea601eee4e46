"""blockbuild - Incremental multi-module build orchestrator.

This package decides which Gradle modules need rebuilding since the last
published run, builds and deploys them, writes hash and commit manifests,
dual-signs the outputs with GPG and packages everything for distribution.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
