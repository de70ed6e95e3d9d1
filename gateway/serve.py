# gateway/serve.py
from __future__ import annotations

import asyncio
import logging
import os
import socket
from typing import Iterable, List, Optional, Sequence

import dns.resolver
import uvicorn
from fastapi import FastAPI

from gateway.config import ParentConnection, Runtime, Settings
from gateway.errors import StartupError

log = logging.getLogger(__name__)

PUBLIC_RESOLVERS: Sequence[str] = ("8.8.8.8", "8.8.4.4")
READY_MESSAGE = "started"


def normalize_resolvers(current: Iterable[str], preferred: Sequence[str] = PUBLIC_RESOLVERS) -> List[str]:
    """Preferred resolvers first, then the current ones, without duplicates."""
    seen = set()
    out: List[str] = []
    for server in [*preferred, *current]:
        if server and server not in seen:
            seen.add(server)
            out.append(server)
    return out


def configure_resolvers(preferred: Sequence[str] = PUBLIC_RESOLVERS) -> List[str]:
    try:
        resolver = dns.resolver.get_default_resolver()
    except dns.resolver.NoResolverConfiguration:
        resolver = dns.resolver.Resolver(configure=False)
        dns.resolver.default_resolver = resolver
    current = [str(getattr(ns, "address", ns)) for ns in resolver.nameservers]
    servers = normalize_resolvers(current, preferred)
    resolver.nameservers = servers
    log.info("dns resolvers configured", extra={"nameservers": servers})
    return servers


def notify_started(parent: Optional[ParentConnection] = None) -> bool:
    """
    Tell a waiting parent process that the server is up: over the runtime's
    parent connection, and via NOTIFY_SOCKET when a supervisor set one.
    """
    sent = False
    if parent is not None:
        parent.send(READY_MESSAGE)
        sent = True
    address = os.getenv("NOTIFY_SOCKET", "")
    if address:
        if address.startswith("@"):
            address = "\0" + address[1:]
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            sock.connect(address)
            sock.sendall(f"READY=1\nSTATUS={READY_MESSAGE}".encode("utf-8"))
        sent = True
    return sent


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise StartupError("listen", f"cannot bind {host}:{port}: {exc}") from exc
    sock.set_inheritable(True)
    return sock


def post_start(settings: Settings, runtime: Runtime) -> None:
    try:
        configure_resolvers(settings.preferred_resolvers)
    except Exception as exc:
        log.warning("dns resolver configuration failed: %s", exc)
    try:
        notify_started(runtime.parent)
    except Exception as exc:
        log.warning("readiness notification failed: %s", exc)


async def serve(app: FastAPI, settings: Settings, runtime: Runtime) -> None:
    sock = bind_socket(settings.host, settings.port)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve(sockets=[sock]))

    while not server.started:
        if task.done():
            await task
            raise StartupError("listen", "server exited before it started listening")
        await asyncio.sleep(0.05)

    log.info("listening", extra={"host": settings.host, "port": sock.getsockname()[1]})
    post_start(settings, runtime)
    await task
