"""Security profiles for debug containers.

Four named profiles exist: restricted, baseline, general and privileged.
Any other name resolves to general, the permissive default, so a typo in
the profile name never blocks an operator.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

RUNTIME_DEFAULT = "RuntimeDefault"
UNCONFINED = "Unconfined"

NONROOT_UID = 1000

PROFILES = ("general", "restricted", "baseline", "privileged")

# kubectl debug has no "privileged" profile; sysadmin is its equivalent.
_KUBECTL_PROFILES = {
    "general": "general",
    "restricted": "restricted",
    "baseline": "baseline",
    "privileged": "sysadmin",
}


@dataclass(frozen=True)
class SecurityPolicy:
    """Container-level and pod-level security settings.

    Attributes:
        profile: Name of the profile the policy was resolved from.
        allow_privilege_escalation: Container may gain privileges.
        privileged: Container runs privileged.
        capabilities_add: Capabilities added to the container.
        capabilities_drop: Capabilities dropped from the container.
        run_as_non_root: Container must not run as root.
        run_as_user: Numeric user of the container.
        seccomp: Container seccomp profile type.
        pod_run_as_non_root: Pod-level run-as-non-root.
        pod_run_as_user: Pod-level numeric user.
        pod_seccomp: Pod-level seccomp profile type.
    """

    profile: str
    allow_privilege_escalation: bool | None = None
    privileged: bool | None = None
    capabilities_add: tuple[str, ...] = ()
    capabilities_drop: tuple[str, ...] = ()
    run_as_non_root: bool | None = None
    run_as_user: int | None = None
    seccomp: str = RUNTIME_DEFAULT
    pod_run_as_non_root: bool | None = None
    pod_run_as_user: int | None = None
    pod_seccomp: str = RUNTIME_DEFAULT

    def with_run_as_user(
        self, uid: int, run_as_non_root: bool | None = None
    ) -> SecurityPolicy:
        """Return a copy running as `uid`, keeping the profile's shape."""
        return replace(
            self,
            run_as_user=uid,
            run_as_non_root=run_as_non_root,
            pod_run_as_user=uid,
            pod_run_as_non_root=run_as_non_root,
        )

    def container_context(self) -> dict[str, Any]:
        """Render the container securityContext."""
        ctx: dict[str, Any] = {"seccompProfile": {"type": self.seccomp}}
        if self.allow_privilege_escalation is not None:
            ctx["allowPrivilegeEscalation"] = self.allow_privilege_escalation
        if self.privileged is not None:
            ctx["privileged"] = self.privileged
        if self.capabilities_add or self.capabilities_drop:
            caps: dict[str, list[str]] = {}
            if self.capabilities_add:
                caps["add"] = list(self.capabilities_add)
            if self.capabilities_drop:
                caps["drop"] = list(self.capabilities_drop)
            ctx["capabilities"] = caps
        if self.run_as_non_root is not None:
            ctx["runAsNonRoot"] = self.run_as_non_root
        if self.run_as_user is not None:
            ctx["runAsUser"] = self.run_as_user
        return ctx

    def pod_context(self) -> dict[str, Any]:
        """Render the pod securityContext."""
        ctx: dict[str, Any] = {"seccompProfile": {"type": self.pod_seccomp}}
        if self.pod_run_as_non_root is not None:
            ctx["runAsNonRoot"] = self.pod_run_as_non_root
        if self.pod_run_as_user is not None:
            ctx["runAsUser"] = self.pod_run_as_user
        return ctx


def resolve_profile(name: str) -> SecurityPolicy:
    """Resolve a profile name to its security policy.

    Args:
        name: Profile name. Unrecognized names resolve to "general".

    Returns:
        The SecurityPolicy for the profile.
    """
    if name == "restricted":
        return SecurityPolicy(
            profile="restricted",
            allow_privilege_escalation=False,
            capabilities_drop=("ALL",),
            run_as_non_root=True,
            run_as_user=NONROOT_UID,
            pod_run_as_non_root=True,
            pod_run_as_user=NONROOT_UID,
        )
    if name == "baseline":
        return SecurityPolicy(
            profile="baseline",
            allow_privilege_escalation=False,
            capabilities_drop=("ALL",),
        )
    if name == "privileged":
        return SecurityPolicy(
            profile="privileged",
            allow_privilege_escalation=True,
            privileged=True,
            capabilities_add=("ALL",),
            seccomp=UNCONFINED,
            pod_seccomp=UNCONFINED,
        )
    return SecurityPolicy(profile="general")


def kubectl_profile(name: str) -> str:
    """Map a profile name to the matching `kubectl debug --profile` value."""
    return _KUBECTL_PROFILES.get(name, "general")
