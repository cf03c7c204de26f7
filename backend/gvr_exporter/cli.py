"""Command line entry point: load configuration, compile the stub, serve /metrics."""
import argparse
import sys

import uvicorn
from pydantic import ValidationError

from gvr_exporter.core.config import (Settings, get_settings, load_exporter_config,
                                      resolve_kubeconfig_path)
from gvr_exporter.core.errors import STARTUP_ERRORS, ConfigError
from gvr_exporter.core.logging_config import LoggingConfig
from gvr_exporter.main import create_app
from gvr_exporter.services.policy_evaluator import prepare
from gvr_exporter.services.resource_fetcher import KubernetesResourceFetcher, build_api_client
from gvr_exporter.services.scrape_service import ScrapeService

logger = LoggingConfig.get_logger(__name__)


def build_parser():
    p = argparse.ArgumentParser(
        prog="gvr-exporter",
        description="Serve metrics printed by a stub evaluated over a Kubernetes resource collection",
    )
    p.add_argument("--kubeconfig", default=None,
                   help="Path to a kubeconfig. Only required if out-of-cluster.")
    p.add_argument("--config", dest="config_path", default=None,
                   help="Path to the GVR/stub configuration file.")
    p.add_argument("--port", type=int, default=None, help="Port number to listen on.")
    p.add_argument("--host", default=None, help="Address to listen on.")
    p.add_argument("--log-level", default=None, help="Logging level (DEBUG, INFO, ...).")
    p.add_argument("--scrape-timeout", dest="scrape_timeout_seconds", type=float, default=None,
                   help="Seconds allowed for one fetch-evaluate cycle.")
    return p


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Flags that were given win over environment settings

    Raises:
        ConfigError: a flag value violates the settings constraints
    """
    overrides = {
        name: value
        for name, value in (
            ("kubeconfig", args.kubeconfig),
            ("config_path", args.config_path),
            ("port", args.port),
            ("host", args.host),
            ("log_level", args.log_level.upper() if args.log_level else None),
            ("scrape_timeout_seconds", args.scrape_timeout_seconds),
        )
        if value is not None
    }
    try:
        return Settings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise ConfigError(f"invalid command line settings: {e}") from e


def build_scrape_service(settings: Settings) -> ScrapeService:
    """
    Everything that must succeed before serving

    Raises:
        ConfigError, CompileError, ClientInitError
    """
    exporter_config = load_exporter_config(settings.config_path)
    query = prepare(exporter_config.policy)
    api_client = build_api_client(resolve_kubeconfig_path(settings.kubeconfig))
    return ScrapeService(
        fetcher=KubernetesResourceFetcher(api_client),
        query=query,
        selector=exporter_config.selector,
        timeout=settings.scrape_timeout_seconds,
    )


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    LoggingConfig.configure(level=args.log_level, force=True)

    try:
        settings = apply_overrides(get_settings(), args)
        service = build_scrape_service(settings)
    except STARTUP_ERRORS as e:
        logger.critical(e.message, extra=e.to_dict())
        print(f"gvr-exporter: {e.message}", file=sys.stderr)
        return 1

    app = create_app(service, settings)
    logger.info(f"starting metrics server on port {settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
