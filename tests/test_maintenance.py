"""Tests for logs, inspect, update, backup, cleanup and list."""
import tarfile
from dataclasses import replace
from unittest.mock import Mock

import pytest

from devbox.core.errors import ConfirmationDeclined, ContainerNotFound
from tests.conftest import FakeDocker, make_services


def maintenance_for(settings, docker, clock=None):
    operations = make_services(settings, docker).maintenance()
    if clock is not None:
        operations.clock = clock
    return operations


class TestLogs:
    def test_default_tail(self, settings):
        docker = FakeDocker({"ubuntu": True})
        maintenance_for(settings, docker).logs()
        assert ["logs", "--tail", "50", "ubuntu"] in docker.docker_calls

    def test_follow_and_since(self, settings):
        docker = FakeDocker({"ubuntu": True})
        maintenance_for(settings, docker).logs(follow=True, tail="10", since="5m")
        assert ["logs", "-f", "--tail", "10", "--since", "5m", "ubuntu"] in docker.docker_calls

    def test_absent(self, settings):
        with pytest.raises(ContainerNotFound):
            maintenance_for(settings, FakeDocker()).logs()


class TestInspect:
    def test_parsed_json(self, settings):
        details = maintenance_for(settings, FakeDocker({"ubuntu": False})).inspect()
        assert details[0]["Config"]["Image"] == "ubuntu:latest"

    def test_format(self, settings):
        value = maintenance_for(settings, FakeDocker({"ubuntu": False})).inspect(fmt="{{.Config.Image}}")
        assert value == "ubuntu:latest"


class TestUpdateImage:
    def test_pulls_stops_and_removes(self, settings):
        docker = FakeDocker({"ubuntu": True})
        maintenance_for(settings, docker).update_image()

        assert [call[0] for call in docker.mutating_calls] == ["pull", "stop", "rm"]
        assert docker.mutating_calls[0] == ["pull", "ubuntu:latest"]
        assert "ubuntu" not in docker.containers

    def test_declined(self, settings):
        docker = FakeDocker({"ubuntu": True})
        services = make_services(settings, docker)
        services.confirm = Mock()
        services.confirm.confirm.return_value = False

        with pytest.raises(ConfirmationDeclined):
            services.maintenance().update_image()
        assert docker.mutating_calls == []


class TestBackup:
    def test_archives_data_directory(self, settings, tmp_path):
        data_dir = tmp_path / "ubuntu-data"
        (data_dir / "workspace").mkdir(parents=True)
        (data_dir / "workspace" / "notes.txt").write_text("hello")
        target = tmp_path / "backup.tar.gz"

        archive = maintenance_for(settings, FakeDocker()).backup(output=str(target))

        assert archive == target
        with tarfile.open(target, "r:gz") as tar:
            assert "ubuntu-data/workspace/notes.txt" in tar.getnames()

    def test_default_name_uses_date(self, settings, tmp_path, monkeypatch):
        (tmp_path / "ubuntu-data").mkdir()
        monkeypatch.chdir(tmp_path)

        archive = maintenance_for(settings, FakeDocker(), clock=lambda: 0).backup(compress=False)

        assert archive.name.startswith("devbox-backup-19")
        assert archive.name.endswith(".tar")

    def test_missing_data_directory(self, settings, tmp_path):
        assert maintenance_for(settings, FakeDocker()).backup(output=str(tmp_path / "b.tar.gz")) is None

    def test_include_container_commits_snapshot(self, settings, tmp_path):
        docker = FakeDocker({"ubuntu": True})
        maintenance_for(settings, docker, clock=lambda: 1700000000).backup(
            output=str(tmp_path / "b.tar.gz"), include_container=True
        )
        assert docker.mutating_calls == [["commit", "ubuntu", "ubuntu-backup:1700000000"]]

    def test_dry_run_writes_nothing(self, settings, tmp_path):
        (tmp_path / "ubuntu-data").mkdir()
        target = tmp_path / "b.tar.gz"
        docker = FakeDocker({"ubuntu": True})

        maintenance_for(replace(settings, dry_run=True), docker).backup(
            output=str(target), include_container=True
        )

        assert not target.exists()
        assert docker.mutating_calls == []


class TestCleanup:
    def test_system_prune_only_by_default(self, settings):
        docker = FakeDocker()
        reports = maintenance_for(settings, docker).cleanup()

        assert docker.mutating_calls == [["system", "prune", "-f"]]
        assert reports == ["Total reclaimed space: 0B"]

    def test_all_images_and_volumes(self, settings):
        docker = FakeDocker()
        maintenance_for(settings, docker).cleanup(all_resources=True, images=True, volumes=True)

        assert docker.mutating_calls == [
            ["system", "prune", "-f", "-a"],
            ["image", "prune", "-a", "-f"],
            ["volume", "prune", "-f"],
        ]


class TestListContainers:
    def test_marks_managed_container(self, settings):
        docker = FakeDocker({"ubuntu": True, "postgres": False})
        containers = maintenance_for(settings, docker).list_containers()

        by_name = {container.name: container for container in containers}
        assert by_name["ubuntu"].managed
        assert by_name["ubuntu"].running
        assert not by_name["postgres"].managed
        assert by_name["postgres"].image == "ubuntu:latest"
