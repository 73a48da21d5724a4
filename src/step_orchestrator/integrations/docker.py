"""Docker integration driving the ``docker`` CLI."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any

from step_orchestrator.integrations.base import (
    ActionSpec,
    Integration,
    IntegrationHealth,
    IntegrationResult,
)
from step_orchestrator.integrations.shell import CommandRunner, has_placeholder, run_command

logger = logging.getLogger(__name__)

DOCKER_ID = "docker"


class DockerIntegration(Integration):
    def __init__(
        self,
        *,
        registry: str = "",
        timeout_seconds: float = 300.0,
        runner: CommandRunner = run_command,
    ) -> None:
        self._registry = registry.rstrip("/")
        self._timeout = timeout_seconds
        self._run = runner
        self._cli_lock = threading.Lock()
        self._cli_available: bool | None = None

    @property
    def id(self) -> str:
        return DOCKER_ID

    @property
    def name(self) -> str:
        return "Docker"

    def is_configured(self) -> bool:
        """Whether the docker CLI answers. Checked once, then remembered."""

        with self._cli_lock:
            if self._cli_available is None:
                self._cli_available = self._run(["docker", "version"], None, 5.0).ok
                logger.info("Docker CLI availability", extra={"available": self._cli_available})
            return self._cli_available

    def health_check(self) -> IntegrationHealth:
        start = time.monotonic()
        outcome = self._run(["docker", "info", "--format", "{{.ServerVersion}}"], None, 5.0)
        if outcome.ok:
            return IntegrationHealth.up(self.id, int((time.monotonic() - start) * 1000))
        return IntegrationHealth.down(self.id, "Docker daemon not responding")

    def actions(self) -> Mapping[str, ActionSpec]:
        return {
            "build": ActionSpec(
                "build",
                self.build,
                {"contextPath": str, "imageName": str, "tag": str, "dockerfile": str},
            ),
            "push": ActionSpec("push", self.push, {"imageName": str, "tag": str}),
            "listContainers": ActionSpec("listContainers", self.list_containers, {"all": bool}),
            "run": ActionSpec(
                "run",
                self.run,
                {"imageName": str, "containerName": str, "detached": bool},
            ),
            "composeUp": ActionSpec(
                "composeUp", self.compose_up, {"composePath": str, "detached": bool}
            ),
            "composeDown": ActionSpec("composeDown", self.compose_down, {"composePath": str}),
        }

    def _image_ref(self, params: Mapping[str, Any]) -> str:
        image = str(params.get("imageName") or "").strip()
        if not image:
            raise ValueError("imageName is required")
        if has_placeholder(image):
            raise ValueError(f"Unresolved placeholder in imageName: {image}")
        # Registry prefix only applies to bare names such as "app" or "team/app".
        if self._registry and "." not in image.split("/")[0] and ":" not in image.split("/")[0]:
            image = f"{self._registry}/{image}"
        return f"{image}:{params.get('tag') or 'latest'}"

    def build(self, params: Mapping[str, Any]) -> IntegrationResult:
        ref = self._image_ref(params)
        args = ["docker", "build", "-t", ref]
        dockerfile = params.get("dockerfile")
        if dockerfile:
            args += ["-f", str(dockerfile)]
        build_args = params.get("buildArgs")
        if isinstance(build_args, Mapping):
            for key, value in build_args.items():
                args += ["--build-arg", f"{key}={value}"]
        args.append(str(params.get("contextPath") or "."))

        start = time.monotonic()
        logger.info("Building image", extra={"image": ref})
        outcome = self._run(args, None, self._timeout)
        elapsed = int((time.monotonic() - start) * 1000)
        if not outcome.ok:
            reason = "timed out" if outcome.timed_out else f"exit code {outcome.returncode}"
            return IntegrationResult(
                self.id,
                "build",
                False,
                f"Build failed ({reason})",
                {"output": outcome.tail()},
                elapsed,
            )
        return IntegrationResult.ok(
            self.id, "build", f"Built {ref}", {"image": ref, "output": outcome.tail()}, elapsed
        )

    def push(self, params: Mapping[str, Any]) -> IntegrationResult:
        ref = self._image_ref(params)
        start = time.monotonic()
        logger.info("Pushing image", extra={"image": ref})
        outcome = self._run(["docker", "push", ref], None, self._timeout)
        elapsed = int((time.monotonic() - start) * 1000)
        if not outcome.ok:
            output = {"output": outcome.tail()}
            message = f"Push failed for {ref}"
            return IntegrationResult(self.id, "push", False, message, output, elapsed)
        return IntegrationResult.ok(self.id, "push", f"Pushed {ref}", {"image": ref}, elapsed)

    def list_containers(self, params: Mapping[str, Any]) -> IntegrationResult:
        args = ["docker", "ps", "--format", "{{.ID}}\t{{.Image}}\t{{.Status}}\t{{.Names}}"]
        if params.get("all") is True:
            args.insert(2, "-a")
        outcome = self._run(args, None, 30.0)
        if not outcome.ok:
            return IntegrationResult.failure(self.id, "listContainers", outcome.output.strip())
        containers = []
        for line in outcome.output.splitlines():
            parts = line.split("\t")
            if len(parts) == 4:
                containers.append(
                    {"id": parts[0], "image": parts[1], "status": parts[2], "name": parts[3]}
                )
        return IntegrationResult.ok(
            self.id,
            "listContainers",
            f"Found {len(containers)} containers",
            {"containers": containers},
        )

    def run(self, params: Mapping[str, Any]) -> IntegrationResult:
        image = str(params.get("imageName") or "").strip()
        if not image:
            raise ValueError("imageName is required")
        if has_placeholder(image):
            raise ValueError(f"Unresolved placeholder in imageName: {image}")
        container_name = params.get("containerName")

        args = ["docker", "run"]
        if params.get("detached", True) is not False:
            args.append("-d")
        if container_name:
            args += ["--name", str(container_name)]
        env_vars = params.get("envVars")
        if isinstance(env_vars, Mapping):
            for key, value in env_vars.items():
                args += ["-e", f"{key}={value}"]
        ports = params.get("portMappings")
        if isinstance(ports, Mapping):
            for host, container in ports.items():
                args += ["-p", f"{host}:{container}"]
        args.append(image)

        start = time.monotonic()
        logger.info("Starting container", extra={"image": image, "container": container_name})
        outcome = self._run(args, None, 30.0)
        elapsed = int((time.monotonic() - start) * 1000)
        output = outcome.output.strip()
        if not outcome.ok:
            return IntegrationResult.failure(self.id, "run", f"Run failed: {output[-500:]}")
        started = container_name or output[:12]
        return IntegrationResult.ok(
            self.id,
            "run",
            f"Started container {started}",
            {"containerId": output, "imageName": image},
            elapsed,
        )

    def _compose(self, action: str, params: Mapping[str, Any], *tail: str) -> IntegrationResult:
        args = ["docker", "compose"]
        compose_path = params.get("composePath")
        if compose_path:
            args += ["-f", str(compose_path)]
        args += tail

        start = time.monotonic()
        logger.info("Running docker compose", extra={"args": args})
        outcome = self._run(args, None, self._timeout)
        elapsed = int((time.monotonic() - start) * 1000)
        if not outcome.ok:
            verb = "up" if action == "composeUp" else "down"
            return IntegrationResult(
                self.id,
                action,
                False,
                f"Compose {verb} failed (exit code {outcome.returncode})",
                {"output": outcome.tail()},
                elapsed,
            )
        if action == "composeUp":
            message = "Started compose services"
        else:
            message = "Stopped compose services"
        return IntegrationResult.ok(self.id, action, message, {"output": outcome.tail()}, elapsed)

    def compose_up(self, params: Mapping[str, Any]) -> IntegrationResult:
        tail = ["up", "-d"] if params.get("detached", True) is not False else ["up"]
        return self._compose("composeUp", params, *tail)

    def compose_down(self, params: Mapping[str, Any]) -> IntegrationResult:
        return self._compose("composeDown", params, "down")
