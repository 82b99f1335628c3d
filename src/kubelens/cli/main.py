"""kubelens CLI: manage registered clusters from the command line.

Commands:
    clusters list|show|update|delete|touch
                        Manage the cluster registry
    import discover     List contexts in a kubeconfig file or folder
    import add          Import one context as a new cluster
    import migrate      Register contexts from legacy kubeconfig files
    contexts            List contexts in $KUBECONFIG, ~/.kube/config and the
                        managed directory
    namespaces          List namespaces of a cluster
    resources list|delete
                        List or delete resources of a cluster
    watch pods          Stream pod events
    logs                Follow a container's log
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel

from kubelens import __version__
from kubelens.commands import KubeLens
from kubelens.config import load_config
from kubelens.models import CommandResult
from kubelens.streams.bridge import QueueEventSink
from kubelens.streams.watchers import POD_EVENT


# --- Helpers ---


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    return data


def _lens(ctx: click.Context) -> KubeLens:
    """Build the facade once per invocation; closed when the context ends."""
    obj = ctx.ensure_object(dict)
    if "lens" not in obj:
        try:
            config = load_config(obj.get("config_path"))
        except (OSError, ValueError) as e:
            click.echo(f"Error loading config: {e}", err=True)
            sys.exit(1)
        lens = KubeLens(config, sink=QueueEventSink())
        ctx.call_on_close(lens.close)
        obj["lens"] = lens
    return obj["lens"]


def _unwrap(result: CommandResult) -> Any:
    if not result.success:
        click.echo(click.style("Error", fg="red") + f": {result.error}", err=True)
        sys.exit(1)
    return result.data


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(_jsonable(data), indent=2))


def _split_tags(tags: str | None) -> list[str]:
    if not tags:
        return []
    return [t.strip() for t in tags.split(",")]


# --- Root group ---


@click.group()
@click.option(
    "--config", "config_path", default=None, type=click.Path(dir_okay=False),
    help="Path to kubelens.yaml (default: $KUBELENS_CONFIG or ~/.kubelens/kubelens.yaml)",
)
@click.option(
    "--log-level", default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str) -> None:
    """kubelens: Kubernetes cluster registry with isolated credentials."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.captureWarnings(True)
    ctx.ensure_object(dict)["config_path"] = config_path


# --- clusters group ---


@cli.group()
def clusters() -> None:
    """Manage registered clusters."""


@clusters.command("list")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def clusters_list(ctx: click.Context, json_output: bool) -> None:
    """List clusters, most recently used first."""
    items = _unwrap(_lens(ctx).list_clusters())

    if json_output:
        _echo_json(items)
        return
    if not items:
        click.echo("No clusters registered.")
        return
    for c in items:
        tags = f"  [{', '.join(c.tags)}]" if c.tags else ""
        click.echo(
            click.style(c.name, bold=True)
            + f"  {c.context_name}  {c.id}"
            + click.style(tags, fg="cyan")
        )
    click.echo(f"\n{len(items)} cluster(s) registered.")


@clusters.command("show")
@click.argument("cluster_id")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def clusters_show(ctx: click.Context, cluster_id: str, json_output: bool) -> None:
    """Show one cluster."""
    cluster = _unwrap(_lens(ctx).get_cluster(cluster_id))
    if cluster is None:
        click.echo(f"Cluster not found: {cluster_id}", err=True)
        sys.exit(1)

    if json_output:
        _echo_json(cluster)
        return
    click.echo(click.style(cluster.name, bold=True))
    click.echo(f"  id:          {cluster.id}")
    click.echo(f"  context:     {cluster.context_name}")
    click.echo(f"  config:      {cluster.config_path}")
    click.echo(f"  icon:        {cluster.icon or '-'}")
    click.echo(f"  description: {cluster.description or '-'}")
    click.echo(f"  tags:        {', '.join(cluster.tags) or '-'}")
    click.echo(f"  last used:   {cluster.last_accessed}")


@clusters.command("update")
@click.argument("cluster_id")
@click.option("--name", default=None, help="New display name")
@click.option("--icon", default=None, help="New icon")
@click.option("--clear-icon", is_flag=True, help="Remove the icon")
@click.option("--description", default=None, help="New description")
@click.option("--clear-description", is_flag=True, help="Remove the description")
@click.option("--tags", default=None, help="Comma-separated tags (replaces existing)")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def clusters_update(
    ctx: click.Context,
    cluster_id: str,
    name: str | None,
    icon: str | None,
    clear_icon: bool,
    description: str | None,
    clear_description: bool,
    tags: str | None,
    json_output: bool,
) -> None:
    """Update a cluster's display metadata."""
    fields: dict[str, Any] = {}
    if name is not None:
        fields["name"] = name
    if clear_icon:
        fields["icon"] = None
    elif icon is not None:
        fields["icon"] = icon
    if clear_description:
        fields["description"] = None
    elif description is not None:
        fields["description"] = description
    if tags is not None:
        fields["tags"] = _split_tags(tags)

    cluster = _unwrap(_lens(ctx).update_cluster(cluster_id, **fields))
    if cluster is None:
        click.echo(f"Cluster not found: {cluster_id}", err=True)
        sys.exit(1)
    if json_output:
        _echo_json(cluster)
    else:
        click.echo(click.style("Updated", fg="green") + f"  {cluster.name} ({cluster.id})")


@clusters.command("delete")
@click.argument("cluster_id")
@click.pass_context
def clusters_delete(ctx: click.Context, cluster_id: str) -> None:
    """Remove a cluster and its isolated kubeconfig."""
    if not _unwrap(_lens(ctx).delete_cluster(cluster_id)):
        click.echo(f"Cluster not found: {cluster_id}", err=True)
        sys.exit(1)
    click.echo(click.style("Deleted", fg="green") + f"  {cluster_id}")


@clusters.command("touch")
@click.argument("cluster_id")
@click.pass_context
def clusters_touch(ctx: click.Context, cluster_id: str) -> None:
    """Mark a cluster as just used."""
    _unwrap(_lens(ctx).touch_cluster(cluster_id))


# --- import group ---


@cli.group("import")
def import_() -> None:
    """Import contexts from kubeconfig files."""


@import_.command("discover")
@click.argument("path", type=click.Path(exists=True))
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def import_discover(ctx: click.Context, path: str, json_output: bool) -> None:
    """List importable contexts in a file or folder."""
    lens = _lens(ctx)
    if Path(path).is_dir():
        candidates = _unwrap(lens.discover_folder(path))
    else:
        candidates = _unwrap(lens.discover_file(path))

    if json_output:
        _echo_json(candidates)
        return
    if not candidates:
        click.echo("No contexts found.")
        return
    for cand in candidates:
        click.echo(click.style(cand.suggested_name, bold=True) + f"  {cand.description}")
    click.echo(f"\n{len(candidates)} context(s) found.")


@import_.command("add")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.argument("context_name")
@click.option("--name", required=True, help="Display name for the new cluster")
@click.option("--icon", default=None, help="Display icon")
@click.option("--description", default=None, help="Free-form description")
@click.option("--tags", default=None, help="Comma-separated tags")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def import_add(
    ctx: click.Context,
    source: str,
    context_name: str,
    name: str,
    icon: str | None,
    description: str | None,
    tags: str | None,
    json_output: bool,
) -> None:
    """Extract CONTEXT_NAME from SOURCE into its own kubeconfig and register it."""
    cluster = _unwrap(_lens(ctx).import_cluster(
        source, context_name, name,
        icon=icon, description=description, tags=_split_tags(tags),
    ))
    if json_output:
        _echo_json(cluster)
    else:
        click.echo(click.style("Imported", fg="green") + f"  {cluster.name} ({cluster.id})")


@import_.command("migrate")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def import_migrate(ctx: click.Context, json_output: bool) -> None:
    """Register contexts found in legacy kubeconfigs in the managed directory."""
    names = _unwrap(_lens(ctx).migrate_legacy_configs())
    if json_output:
        _echo_json(names)
        return
    for name in names:
        click.echo(f"  + {name}")
    click.echo(f"Migrated {len(names)} context(s).")


# --- contexts command ---


@cli.command("contexts")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def contexts(ctx: click.Context, json_output: bool) -> None:
    """List contexts from all known kubeconfig files."""
    names = _unwrap(_lens(ctx).list_contexts())
    if json_output:
        _echo_json(names)
        return
    if not names:
        click.echo("No contexts found.")
        return
    for name in names:
        click.echo(name)


# --- namespaces / resources ---


@cli.command("namespaces")
@click.argument("cluster_id", required=False)
@click.option("--context", "context_name", default=None, help="Use a kubeconfig context instead")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def namespaces(
    ctx: click.Context, cluster_id: str | None, context_name: str | None, json_output: bool,
) -> None:
    """List namespaces of CLUSTER_ID (or of --context)."""
    lens = _lens(ctx)
    if context_name:
        result = asyncio.run(lens.list_context_namespaces(context_name))
    elif cluster_id:
        result = asyncio.run(lens.list_namespaces(cluster_id))
    else:
        click.echo("Error: CLUSTER_ID or --context is required", err=True)
        sys.exit(1)
    names = _unwrap(result)
    if json_output:
        _echo_json(names)
    else:
        for name in names:
            click.echo(name)


@cli.group()
def resources() -> None:
    """Inspect and delete cluster resources."""


@resources.command("list")
@click.argument("cluster_id")
@click.argument("kind")
@click.option("--namespace", "-n", default=None, help="Namespace (default: all)")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def resources_list(
    ctx: click.Context, cluster_id: str, kind: str, namespace: str | None, json_output: bool,
) -> None:
    """List resources of KIND, e.g. pods or deployments."""
    items = _unwrap(asyncio.run(_lens(ctx).list_resources(cluster_id, kind, namespace)))
    if json_output:
        _echo_json(items)
        return
    if not items:
        click.echo(f"No {kind} found.")
        return
    for item in items:
        where = f"{item.namespace}/" if item.namespace else ""
        status = f"  {item.status}" if item.status else ""
        click.echo(f"{where}{item.name}{status}  {item.age}")


@resources.command("delete")
@click.argument("cluster_id")
@click.argument("kind")
@click.argument("name")
@click.option("--namespace", "-n", default=None, help="Namespace of the resource")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def resources_delete(
    ctx: click.Context, cluster_id: str, kind: str, name: str, namespace: str | None, yes: bool,
) -> None:
    """Delete one resource."""
    if not yes:
        click.confirm(f"Delete {kind} {name}?", abort=True)
    _unwrap(asyncio.run(_lens(ctx).delete_resource(cluster_id, kind, name, namespace)))
    click.echo(click.style("Deleted", fg="green") + f"  {kind}/{name}")


# --- streaming ---


async def _follow(
    lens: KubeLens,
    start: Coroutine[Any, Any, CommandResult],
    render: Callable[[str, Any], None],
    max_events: int | None,
) -> CommandResult:
    """Start a stream and print its events until it ends or *max_events* arrive."""
    result = await start
    if not result.success:
        return result
    sink = lens.sink
    if not isinstance(sink, QueueEventSink):
        raise click.ClickException("Streaming output needs a queue-backed event sink")
    task = lens.streams.get(result.data)
    count = 0
    try:
        while max_events is None or count < max_events:
            getter = asyncio.ensure_future(sink.get())
            waiting = {getter} if task is None else {getter, task}
            done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                for event, payload in sink.drain():
                    render(event, payload)
                break
            render(*getter.result())
            count += 1
    finally:
        sink.close()
        lens.streams.cancel_all()
    return result


def _render_pod_event(event: str, payload: Any) -> None:
    if event != POD_EVENT:
        return
    pod = payload["payload"]
    color = {"Added": "green", "Modified": "yellow", "Deleted": "red"}.get(payload["type"])
    click.echo(
        click.style(f"{payload['type']:<9}", fg=color)
        + f" {pod['namespace']}/{pod['name']}  {pod['status']}"
    )


@cli.group()
def watch() -> None:
    """Stream live changes."""


@watch.command("pods")
@click.argument("cluster_id")
@click.option("--namespace", "-n", default="all", help="Namespace, or 'all'")
@click.option("--max-events", default=None, type=int, help="Stop after N events")
@click.option("--json-output", is_flag=True, help="Output events as JSON lines")
@click.pass_context
def watch_pods(
    ctx: click.Context,
    cluster_id: str,
    namespace: str,
    max_events: int | None,
    json_output: bool,
) -> None:
    """Print pod events until interrupted."""
    lens = _lens(ctx)

    def render(event: str, payload: Any) -> None:
        if json_output:
            click.echo(json.dumps({"event": event, "payload": payload}))
        else:
            _render_pod_event(event, payload)

    try:
        result = asyncio.run(
            _follow(lens, lens.start_pod_watch(cluster_id, namespace), render, max_events)
        )
    except KeyboardInterrupt:
        return
    _unwrap(result)


@cli.command("logs")
@click.argument("cluster_id")
@click.argument("namespace")
@click.argument("pod")
@click.argument("container")
@click.option("--stream-id", default=None, help="Stream identifier (default: pod/container)")
@click.option("--max-lines", default=None, type=int, help="Stop after N lines")
@click.pass_context
def logs(
    ctx: click.Context,
    cluster_id: str,
    namespace: str,
    pod: str,
    container: str,
    stream_id: str | None,
    max_lines: int | None,
) -> None:
    """Follow a container's log."""
    lens = _lens(ctx)
    stream_id = stream_id or f"{namespace}-{pod}-{container}"

    def render(event: str, payload: Any) -> None:
        click.echo(payload)

    try:
        result = asyncio.run(_follow(
            lens,
            lens.stream_container_logs(cluster_id, namespace, pod, container, stream_id),
            render,
            max_lines,
        ))
    except KeyboardInterrupt:
        return
    _unwrap(result)


if __name__ == "__main__":
    cli()
