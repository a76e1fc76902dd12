"""Kubernetes workload accessor built on kubernetes-asyncio."""

from __future__ import annotations

from typing import Any

import structlog
from kubernetes_asyncio import client as k8s_client
from kubernetes_asyncio import config as k8s_config
from kubernetes_asyncio.client.exceptions import ApiException

from nanocd.errors import OrchestratorError, WorkloadNotFound
from nanocd.models.results import ApplyResult, ApplyStatus
from nanocd.models.workloads import Container, WorkloadKind
from nanocd.workloads.base import WorkloadAccessor

_log = structlog.get_logger(component="workloads.kubernetes")

CONTAINERS_PATH = "/spec/template/spec/containers"

_READERS: dict[WorkloadKind, str] = {
    WorkloadKind.DEPLOYMENT: "read_namespaced_deployment",
    WorkloadKind.STATEFUL_SET: "read_namespaced_stateful_set",
    WorkloadKind.DAEMON_SET: "read_namespaced_daemon_set",
}

_PATCHERS: dict[WorkloadKind, str] = {
    WorkloadKind.DEPLOYMENT: "patch_namespaced_deployment",
    WorkloadKind.STATEFUL_SET: "patch_namespaced_stateful_set",
    WorkloadKind.DAEMON_SET: "patch_namespaced_daemon_set",
}


async def create_api_client() -> k8s_client.ApiClient:
    """Build an ApiClient from in-cluster config, falling back to kubeconfig."""
    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        _log.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        # load_kube_config() is async in kubernetes-asyncio
        await k8s_config.load_kube_config()
        _log.info("k8s client configured from kubeconfig")
    return k8s_client.ApiClient()


def build_image_patch(
    containers: list[Container],
    patch: dict[str, str],
) -> tuple[list[dict[str, Any]], dict[str, str]]:
    """Translate a name -> image mapping into JSON Patch operations.

    Containers are addressed by their index in *containers*, which must be
    the live list read just before the write. Each replace is guarded by a
    ``test`` on the container's name so a concurrent reorder fails the patch
    instead of rewriting the wrong container. Containers already running
    the target image are left out.

    Returns the operations and the subset of *patch* they write.
    """
    ops: list[dict[str, Any]] = []
    applied: dict[str, str] = {}
    for index, container in enumerate(containers):
        target = patch.get(container.name)
        if target is None or container.image == target:
            continue
        ops.append({"op": "test", "path": f"{CONTAINERS_PATH}/{index}/name", "value": container.name})
        ops.append({"op": "replace", "path": f"{CONTAINERS_PATH}/{index}/image", "value": target})
        applied[container.name] = target
    return ops, applied


class KubernetesWorkloadAccessor(WorkloadAccessor):
    """Reads and JSON-patches Deployments, StatefulSets and DaemonSets.

    Args:
        api_client:      kubernetes-asyncio ApiClient (see ``create_api_client``).
        request_timeout: Seconds before a request counts as a transport failure.
        apps_v1:         Pre-built AppsV1Api; tests pass a mock here.
    """

    def __init__(
        self,
        api_client: k8s_client.ApiClient | None = None,
        request_timeout: float = 10.0,
        apps_v1: Any = None,
    ) -> None:
        self._api_client = api_client
        self._apps_v1 = apps_v1 if apps_v1 is not None else k8s_client.AppsV1Api(api_client=api_client)
        self._timeout = request_timeout

    async def read_containers(self, namespace: str, kind: WorkloadKind, name: str) -> list[Container]:
        reader = getattr(self._apps_v1, _READERS[kind])
        try:
            workload = await reader(name=name, namespace=namespace, _request_timeout=self._timeout)
        except ApiException as exc:
            if exc.status == 404:
                raise WorkloadNotFound(namespace, kind.display_name, name) from exc
            raise OrchestratorError(
                f"reading {kind.display_name} {namespace}/{name}: HTTP {exc.status} {exc.reason}"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise OrchestratorError(f"reading {kind.display_name} {namespace}/{name}: {_describe(exc)}") from exc
        return containers_of(workload)

    async def apply_image_patch(
        self,
        namespace: str,
        kind: WorkloadKind,
        name: str,
        patch: dict[str, str],
    ) -> ApplyResult:
        if not patch:
            return ApplyResult(ApplyStatus.NOOP, reason="empty patch")

        # Indices must come from the live object at write time, not from the
        # read that produced the plan.
        try:
            live = await self.read_containers(namespace, kind, name)
        except (WorkloadNotFound, OrchestratorError) as exc:
            return ApplyResult(ApplyStatus.FAILED, reason=str(exc))

        ops, applied = build_image_patch(live, patch)
        missing = sorted(set(patch) - {c.name for c in live})
        if missing:
            _log.warning(
                "patch_containers_missing",
                namespace=namespace,
                kind=kind.display_name,
                workload=name,
                containers=missing,
            )
        if not ops:
            return ApplyResult(ApplyStatus.NOOP, reason="no live container matches the patch")

        patcher = getattr(self._apps_v1, _PATCHERS[kind])
        try:
            await patcher(name=name, namespace=namespace, body=ops, _request_timeout=self._timeout)
        except ApiException as exc:
            return ApplyResult(ApplyStatus.FAILED, reason=f"HTTP {exc.status} {exc.reason}")
        except Exception as exc:  # noqa: BLE001
            return ApplyResult(ApplyStatus.FAILED, reason=_describe(exc))

        return ApplyResult(ApplyStatus.APPLIED, applied=applied)

    async def close(self) -> None:
        if self._api_client is not None:
            await self._api_client.close()


def containers_of(workload: Any) -> list[Container]:
    """Extract ``spec.template.spec.containers`` from a typed model or a plain dict."""
    spec = _field(workload, "spec")
    template = _field(spec, "template")
    pod_spec = _field(template, "spec")
    raw = _field(pod_spec, "containers") or []
    return [Container(name=str(_field(c, "name")), image=_field(c, "image")) for c in raw]


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _describe(exc: Exception) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
