"""Tests for engine invocations and the process runner."""
import sys

import pytest

from devbox.core.errors import InvocationFailed
from devbox.services.engine.invocation import (
    SPAWN_FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    CommandRunner,
    Engine,
    EngineHandle,
    EngineInvocation,
)
from tests.conftest import FakeDocker


class TestEngineInvocation:
    def test_argv(self):
        invocation = EngineInvocation("stop", ("--time", "10", "ubuntu"), mutating=True)
        assert invocation.argv("/usr/bin/docker") == ["/usr/bin/docker", "stop", "--time", "10", "ubuntu"]

    def test_describe_quotes_arguments(self):
        invocation = EngineInvocation("exec", ("ubuntu", "/bin/sh", "-c", "ls -la"))
        assert invocation.describe() == "docker exec ubuntu /bin/sh -c 'ls -la'"


class TestCommandRunner:
    """The runner reports failures as exit codes and never raises."""

    def test_captures_output(self):
        result = CommandRunner().run([sys.executable, "-c", "print('hello')"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_non_zero_exit(self):
        result = CommandRunner().run([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert result.exit_code == 3

    def test_spawn_failure(self):
        result = CommandRunner().run(["/nonexistent/devbox-test-binary"])
        assert result.exit_code == SPAWN_FAILURE_EXIT_CODE

    def test_timeout(self):
        result = CommandRunner().run([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)
        assert result.exit_code == TIMEOUT_EXIT_CODE


class TestEngine:
    def test_dry_run_describes_mutations(self):
        docker = FakeDocker({"ubuntu": True})
        engine = Engine(EngineHandle("/usr/local/bin/docker"), docker, dry_run=True)

        result = engine.execute(EngineInvocation("stop", ("ubuntu",), mutating=True))

        assert result.ok
        assert docker.calls == []
        assert engine.planned == ["/usr/local/bin/docker stop ubuntu"]

    def test_dry_run_still_runs_queries(self):
        docker = FakeDocker({"ubuntu": True})
        engine = Engine(EngineHandle("/usr/local/bin/docker"), docker, dry_run=True)

        result = engine.execute(EngineInvocation("ps", ("--format", "{{.Names}}")))

        assert result.stdout == "ubuntu\n"

    def test_check_raises_on_failure(self):
        docker = FakeDocker()
        engine = Engine(EngineHandle("/usr/local/bin/docker"), docker)

        with pytest.raises(InvocationFailed) as exc_info:
            engine.check(EngineInvocation("start", ("ubuntu",), mutating=True))

        assert exc_info.value.returncode == 1
        assert "No such container" in exc_info.value.message
