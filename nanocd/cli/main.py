"""Click commands: run the daemon, validate policy, dry-run a cycle, resolve one image."""

from __future__ import annotations

import asyncio
import json

import click

from nanocd import __version__
from nanocd.config import load_policy
from nanocd.errors import ConfigInvalid, RegistryUnavailable
from nanocd.models.config import ImagePolicy, PolicyConfig
from nanocd.models.images import ImageReference
from nanocd.models.results import CycleReport, Resolution
from nanocd.observability.logging import setup_logging
from nanocd.versioning import resolve, validate_range

_LOG_LEVELS = click.Choice(["debug", "info", "warning", "error"], case_sensitive=False)


@click.group()
@click.version_option(version=__version__, prog_name="nanocd")
def cli() -> None:
    """nanocd keeps Kubernetes workloads on the newest image tag their policy allows."""


@cli.command()
def run() -> None:
    """Run the reconciler daemon (settings from NANOCD_* environment variables)."""
    from nanocd.app import main

    asyncio.run(main())


@cli.command()
@click.argument("config_path", type=click.Path(dir_okay=False))
def check(config_path: str) -> None:
    """Validate a policy file and print what it would reconcile."""
    policy = _load_or_exit(config_path)
    click.echo(f"refresh interval: {policy.refresh_interval_seconds:g}s")
    for namespace, ns_policy in policy.namespaces.items():
        click.echo(f"namespace {namespace}:")
        for kind, name in ns_policy.targets():
            click.echo(f"  {kind.display_name}/{name}")
        for repository, image_policy in ns_policy.images.items():
            click.echo(f"  image {repository}: prefix={image_policy.prefix!r} range={image_policy.version_range!r}")
        if ns_policy.notification_url:
            click.echo("  notifications: webhook")
    click.echo("policy OK")


@cli.command()
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.option("--timeout", default=10.0, show_default=True, help="Request timeout in seconds.")
@click.option("--concurrency", default=1, show_default=True, help="Workloads planned at once.")
@click.option("--log-level", type=_LOG_LEVELS, default="warning", show_default=True)
def plan(config_path: str, timeout: float, concurrency: int, log_level: str) -> None:
    """Run one dry-run cycle against the cluster and print the planned patches as JSON."""
    policy = _load_or_exit(config_path)
    setup_logging(log_level, "console")
    report = asyncio.run(_plan_cycle(policy, timeout, concurrency))
    click.echo(json.dumps(report.to_dict(), indent=2))


@cli.command(name="resolve")
@click.argument("image")
@click.option("--prefix", default="", help="Literal tag prefix before the version (e.g. v).")
@click.option("--range", "version_range", default="*", show_default=True, help="npm-style semver range.")
@click.option("--timeout", default=10.0, show_default=True, help="Request timeout in seconds.")
def resolve_cmd(image: str, prefix: str, version_range: str, timeout: float) -> None:
    """List IMAGE's tags from its registry and show which one the policy would pick."""
    try:
        validate_range(version_range)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--range") from exc

    policy = ImagePolicy(prefix=prefix, version_range=version_range)
    try:
        resolution = asyncio.run(_resolve_one(image, policy, timeout))
    except RegistryUnavailable as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(json.dumps(_resolution_to_dict(resolution), indent=2))


def _load_or_exit(config_path: str) -> PolicyConfig:
    try:
        return load_policy(config_path)
    except ConfigInvalid as exc:
        click.echo(f"invalid policy: {exc}", err=True)
        raise SystemExit(1) from exc


async def _plan_cycle(policy: PolicyConfig, timeout: float, concurrency: int) -> CycleReport:
    from nanocd.reconciler import Reconciler
    from nanocd.registry import RegistryTagProvider
    from nanocd.workloads import KubernetesWorkloadAccessor, create_api_client

    workloads = KubernetesWorkloadAccessor(api_client=await create_api_client(), request_timeout=timeout)
    registry = RegistryTagProvider(timeout=timeout)
    try:
        reconciler = Reconciler(
            policy=policy,
            workloads=workloads,
            tag_provider=registry,
            max_concurrency=concurrency,
            dry_run=True,
        )
        return await reconciler.run_cycle()
    finally:
        await registry.close()
        await workloads.close()


async def _resolve_one(image: str, policy: ImagePolicy, timeout: float) -> Resolution:
    from nanocd.registry import RegistryTagProvider

    registry = RegistryTagProvider(timeout=timeout)
    try:
        tags = await registry.list_tags(ImageReference.parse(image).repository)
    finally:
        await registry.close()
    return resolve(image, policy, tags)


def _resolution_to_dict(resolution: Resolution) -> dict[str, object]:
    return {
        "status": resolution.status.value,
        "current": resolution.current_image,
        "target": resolution.target_image,
        "reason": resolution.reason or None,
        "matched_candidates": resolution.matched_candidates,
        "excluded_by_range": resolution.excluded_by_range,
    }
