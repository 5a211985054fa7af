# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/cli/app.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import typer

from keto_tokens.client.claimant import Claimant
from keto_tokens.client.kubeconfig import render_kubeconfig, write_kubeconfig
from keto_tokens.cloud.provider import ProviderRegistry, default_registry
from keto_tokens.config.loader import load_client_config, load_server_config
from keto_tokens.logging.log import init_logging
from keto_tokens.server.reconciler import Reconciler
from keto_tokens.tokens.issuer import TokenIssuer
from keto_tokens.tokens.kube import KubeSecretStore, get_kube_client

from keto_tokens.cli.helper import build_bus, parse_duration, parse_filters

log = logging.getLogger("keto_tokens")


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(
    help="Client/server used to generate and consume kubelet registration tokens",
    no_args_is_help=True,
)


@dataclass
class CliState:
    cloud: str
    registry: ProviderRegistry
    logger: logging.Logger
    config_path: Optional[Path] = None
    events_file: Optional[Path] = None


def _state(ctx: typer.Context) -> CliState:
    return ctx.find_root().obj


def _run(action: Callable[[], None]) -> None:
    """Run a command body, turning any failure into '[error] ...' and exit 1."""
    try:
        action()
    except typer.Exit:
        raise
    except Exception as e:
        log.debug("command failed", exc_info=True)
        typer.secho(f"[error] operation failed, error: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    cloud: str = typer.Option(
        "aws", "--cloud", "-c", envvar="CLOUD_PROVIDER",
        help="Cloud provider NAME (aws)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", envvar="VERBOSE", help="Switch on verbose logging",
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", envvar="KETO_TOKENS_CONFIG",
        help="YAML file with server:/client: sections; flags override it",
    ),
    events_file: Optional[Path] = typer.Option(
        None, "--events-file", help="Append lifecycle events as JSON lines to this file",
    ),
):
    logger, _ = init_logging(verbose=verbose)
    # tests and embedders may pass a prepared registry through obj
    registry = ctx.obj if isinstance(ctx.obj, ProviderRegistry) else default_registry()
    ctx.obj = CliState(
        cloud=cloud,
        registry=registry,
        logger=logger,
        config_path=config,
        events_file=events_file,
    )


# ------------------------------------------------------------------------------
# server
# ------------------------------------------------------------------------------

@app.command()
def server(
    ctx: typer.Context,
    master: Optional[str] = typer.Option(
        None, "--master", envvar="KUBE_SERVICE_URL", help="URL for the kubernetes API",
    ),
    kube_token: Optional[str] = typer.Option(
        None, "--kube-token", envvar="KUBE_SERVICE_TOKEN",
        help="Kubernetes token used to authenticate to the API",
    ),
    kubeconfig: Optional[str] = typer.Option(
        None, "--kubeconfig", envvar="KUBECONFIG", help="Path to a kubeconfig for API access",
    ),
    tag_name: Optional[str] = typer.Option(
        None, "--tag-name", envvar="TAG_NAME",
        help="Resource tag used to pass the kubelet token [default: KubeletToken]",
    ),
    filters: Optional[List[str]] = typer.Option(
        None, "--filter", envvar="NODE_FILTER",
        help="Filter tags identifying the compute pools (key=value, repeatable)",
    ),
    token_namespace: Optional[str] = typer.Option(
        None, "--token-namespace", envvar="TOKEN_NAMESPACE",
        help="Namespace the registration tokens reside in [default: kube-system]",
    ),
    token_ttl: Optional[str] = typer.Option(
        None, "--token-ttl", envvar="TOKEN_TTL",
        help="Time-to-live of generated tokens, e.g. 30m [default: 30m]",
    ),
    interval: Optional[str] = typer.Option(
        None, "--interval", envvar="INTERVAL",
        help="Reconciliation interval, e.g. 10s [default: 10s]",
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", help="Concurrent token issuers [default: 4]",
    ),
    once: bool = typer.Option(
        False, "--once", help="Run a single reconciliation and exit",
    ),
):
    """Start the service, generating registration tokens for kubelets."""
    state = _state(ctx)

    def action() -> None:
        cfg = load_server_config(
            state.config_path,
            {
                "master": master,
                "kube_token": kube_token,
                "kubeconfig": kubeconfig,
                "tag_name": tag_name,
                "filters": parse_filters(filters),
                "token_namespace": token_namespace,
                "token_ttl_seconds": parse_duration(token_ttl),
                "reconcile_interval_seconds": parse_duration(interval),
                "workers": workers,
            },
        )
        provider = state.registry.get(state.cloud)
        issuer = TokenIssuer(KubeSecretStore(get_kube_client(cfg)))
        reconciler = Reconciler(
            cfg, provider, issuer, bus=build_bus(state.logger, state.events_file),
        )

        if once:
            report = reconciler.reconcile()
            typer.echo(report.summary())
            return

        try:
            reconciler.start()
        except KeyboardInterrupt:
            reconciler.stop()
            log.info("token service stopped")

    _run(action)


# ------------------------------------------------------------------------------
# client
# ------------------------------------------------------------------------------

@app.command()
def client(
    ctx: typer.Context,
    master: Optional[str] = typer.Option(
        None, "--master", envvar="KUBE_SERVICE_URL",
        help="URL for the kubernetes API [default: https://127.0.0.1:6443]",
    ),
    kubeconfig: Optional[str] = typer.Option(
        None, "--kubeconfig", envvar="KUBECONFIG",
        help="Path to write the bootstrap kubeconfig [default: kubeconfig-bootstrap]",
    ),
    tag_name: Optional[str] = typer.Option(
        None, "--tag-name", envvar="TAG_NAME",
        help="Tag used to pass the kubelet registration token [default: KubeletToken]",
    ),
    ca_path: Optional[str] = typer.Option(
        None, "--ca-path", envvar="CA_PATH",
        help="File containing the kubeapi CA (otherwise skip-tls-verify is used)",
    ),
    interval: Optional[str] = typer.Option(
        None, "--interval", envvar="INTERVAL",
        help="Interval for checking the resource tags [default: 5s]",
    ),
    timeout: Optional[str] = typer.Option(
        None, "--timeout", envvar="TIMEOUT", help="Optional timeout for the operation",
    ),
):
    """Retrieve a kubernetes registration token for this node's kubelet."""
    state = _state(ctx)

    def action() -> None:
        cfg = load_client_config(
            state.config_path,
            {
                "master": master,
                "kubeconfig": kubeconfig,
                "tag_name": tag_name,
                "ca_path": ca_path,
                "interval_seconds": parse_duration(interval),
                "timeout_seconds": parse_duration(timeout),
            },
        )
        provider = state.registry.get(state.cloud)
        claimant = Claimant(cfg, provider, bus=build_bus(state.logger, state.events_file))

        log.info("attempting to get registration token, timeout: %s, tag: %s",
                 cfg.timeout_seconds, cfg.tag_name)
        result = claimant.start()
        if not result.claimed:
            log.warning("kubelet registration token already consumed, skipping kubeconfig")
            return

        log.info("retrieved registration token, writing kubeconfig: %s", cfg.kubeconfig)
        write_kubeconfig(cfg.kubeconfig, render_kubeconfig(result.token, cfg.master, cfg.ca_path))

    _run(action)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
