"""
Service Container.

The ``create_services()`` factory wires the credential store, the remote
gateway, the profile repair service, the session manager and the route
guard together, returning a typed dict the entry-point can consume
without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from jobportal.auth import SessionManager
from jobportal.config import AppConfig
from jobportal.database import LocalDatabase
from jobportal.logger import get_logger
from jobportal.routing import RouteGuard, RouteRegistry, default_registry
from jobportal.services.auth_gateway import HttpAuthGateway, RemoteAuthGateway
from jobportal.services.credential_store import CredentialStore
from jobportal.services.profile_repair import ProfileRepairService


class ServiceContainer(TypedDict):
    """Typed container for the session services."""

    credential_store: CredentialStore
    gateway: RemoteAuthGateway
    profile_repair: ProfileRepairService
    session: SessionManager
    route_registry: RouteRegistry
    route_guard: RouteGuard


def create_services(
    db: LocalDatabase,
    config: AppConfig,
    gateway: Optional[RemoteAuthGateway] = None,
) -> ServiceContainer:
    """
    Wire all session services together.

    This is the single composition root.  The entry-point calls it once
    at startup.

    Args:
        db: Initialised LocalDatabase with the schema in place.
        config: Application configuration.
        gateway: Optional gateway override; by default an
            ``HttpAuthGateway`` built from *config* that reads its bearer
            token from the credential store.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    store = CredentialStore(
        db=db,
        logger=get_logger("jobportal.credential_store"),
        salt_path=config.CREDENTIAL_SALT_PATH,
        kdf_iterations=config.CREDENTIAL_KDF_ITERATIONS,
    )

    if gateway is None:
        gateway = HttpAuthGateway.from_config(
            config=config,
            token_provider=store.read_token,
            logger=get_logger("jobportal.gateway"),
        )

    profile_repair = ProfileRepairService(
        gateway=gateway,
        store=store,
        logger=get_logger("jobportal.profile_repair"),
    )
    session = SessionManager(
        gateway=gateway,
        store=store,
        repair=profile_repair,
        logger=get_logger("jobportal.session"),
    )

    route_registry = default_registry(logger=get_logger("jobportal.routing"))
    route_guard = RouteGuard(session=session, registry=route_registry)

    return ServiceContainer(
        credential_store=store,
        gateway=gateway,
        profile_repair=profile_repair,
        session=session,
        route_registry=route_registry,
        route_guard=route_guard,
    )
