"""Prior-run state module.

Fetches the manifests and bundle published by the previous run and
restores the bundle into the staging area.
"""

from blockbuild.state.fetch import PriorState, RemoteStateFetcher

__all__ = ["PriorState", "RemoteStateFetcher"]
