"""Build orchestration module.

This module handles:
- Rebuild decisions from commit hashes and directives
- Running the Gradle wrapper per module
- Staging build artifacts
- Deploying artifacts to the local Maven repository
"""

from blockbuild.builds.decision import ModulePlan, decide, plan_builds

__all__ = ["ModulePlan", "decide", "plan_builds"]
