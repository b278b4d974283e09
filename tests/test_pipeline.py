"""
Tests for the installation pipeline: step order, skips, fatal failures and
best-effort steps, plus end-to-end runs through negotiation and selection.
"""

import asyncio

import pytest

from conftest import RecordingRunner, RecordingSleep, ScriptedInterface
from de_setup.context import RunContext
from de_setup.errors import SetupAbort, SetupError
from de_setup.negotiator import CapabilityNegotiator
from de_setup.packages import get_package_manager
from de_setup.pipeline import InstallationPipeline, PipelineStep
from de_setup.selection import (
    DEFAULT_SELECTION,
    DesktopEnvironment,
    DisplayManager,
    Selection,
    choose_selection,
)
from de_setup.ui import UIBackend

UPDATE = ["apt-get", "update"]


class FakeReboot:
    def __init__(self, returncode=0):
        self.returncode = returncode
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.returncode


def make_context(config, environment, runner, sleep, selection=DEFAULT_SELECTION, ui=None):
    manager = get_package_manager(
        environment.package_manager,
        config=config,
        runner=runner,
        sleep=sleep,
        exists=lambda name: False,
    )
    context = RunContext(config, environment, manager)
    context.freeze_ui(ui or ScriptedInterface(UIBackend.NONE))
    if selection is not None:
        context.set_selection(selection)
    return context


def run_pipeline(context, sleep, reboot=None, exists=lambda name: True):
    pipeline = InstallationPipeline(
        context, exists=exists, sleep=sleep, reboot=reboot or FakeReboot()
    )
    asyncio.run(pipeline.run())
    return pipeline


def installs(runner):
    return [
        cmd[3:]
        for cmd in runner.commands
        if cmd[:2] == ["apt-get", "install"] or cmd[:2] == ["pacman", "-S"]
    ]


def enables(runner):
    return [cmd[-1] for cmd in runner.commands if cmd[:1] == ["systemctl"]]


class TestStepOrder:
    def test_default_apt_run(self, config, apt_environment, runner, sleep):
        reboot = FakeReboot()
        context = make_context(config, apt_environment, runner, sleep)
        pipeline = run_pipeline(context, sleep, reboot)

        assert runner.commands == [
            UPDATE,
            ["apt-get", "install", "-y", "curl"],
            ["apt-get", "install", "-y", "task-kde-desktop"],
            ["apt-get", "install", "-y", "sddm"],
            ["systemctl", "enable", "--now", "sddm"],
            ["apt-get", "autoremove", "-y"],
            ["apt-get", "autoclean", "-y"],
        ]
        assert pipeline.completed == [
            PipelineStep.REFRESH_INDEX,
            PipelineStep.INSTALL_COMMON,
            PipelineStep.INSTALL_DESKTOP,
            PipelineStep.INSTALL_DISPLAY_MANAGER,
            PipelineStep.ENABLE_DISPLAY_MANAGER,
            PipelineStep.CLEANUP,
            PipelineStep.ANNOUNCE,
            PipelineStep.SLEEP,
            PipelineStep.REBOOT,
        ]
        assert pipeline.skipped == [PipelineStep.INSTALL_VISUALS]
        assert sleep.delays == [config.REBOOT_DELAY]
        assert reboot.calls == 1

    def test_announces_through_frozen_ui(self, config, apt_environment, runner, sleep):
        ui = ScriptedInterface(UIBackend.GUM)
        context = make_context(config, apt_environment, runner, sleep, ui=ui)
        run_pipeline(context, sleep)
        assert len(ui.announcements) == 1
        assert "6 seconds" in ui.announcements[0]

    def test_requires_selection(self, config, apt_environment, runner, sleep):
        context = make_context(config, apt_environment, runner, sleep, selection=None)
        with pytest.raises(SetupError):
            run_pipeline(context, sleep)
        assert runner.calls == []


class TestRefreshFailure:
    def test_exhausted_refresh_aborts_before_installs(self, config, apt_environment, sleep):
        runner = RecordingRunner(default=100)
        reboot = FakeReboot()
        context = make_context(config, apt_environment, runner, sleep)
        pipeline = InstallationPipeline(context, exists=lambda n: True, sleep=sleep, reboot=reboot)

        with pytest.raises(SetupAbort) as excinfo:
            asyncio.run(pipeline.run())

        assert excinfo.value.exit_code == 1
        assert runner.commands == [UPDATE] * 6
        assert installs(runner) == []
        assert reboot.calls == 0
        assert pipeline.status["refresh_index"]["status"] == "failed"

    def test_refresh_succeeding_late_continues(self, config, apt_environment, sleep):
        runner = RecordingRunner(returncodes=[100, 100, 0])
        context = make_context(config, apt_environment, runner, sleep)
        pipeline = run_pipeline(context, sleep)
        assert runner.commands[:3] == [UPDATE] * 3
        assert PipelineStep.REBOOT in pipeline.completed

    def test_pacman_refresh_failure_aborts(self, config, pacman_environment, sleep):
        runner = RecordingRunner(default=1)
        context = make_context(config, pacman_environment, runner, sleep)
        with pytest.raises(SetupAbort):
            run_pipeline(context, sleep)
        assert runner.commands == [["pacman", "-Syu", "--noconfirm"]]


class TestDesktopEnvironment:
    def test_minimal_installs_no_desktop(self, config, apt_environment, runner, sleep):
        selection = Selection(DesktopEnvironment.MINIMAL, DisplayManager.SDDM)
        context = make_context(config, apt_environment, runner, sleep, selection)
        pipeline = run_pipeline(context, sleep)
        assert installs(runner) == [["curl"], ["sddm"]]
        assert PipelineStep.INSTALL_DESKTOP in pipeline.skipped

    @pytest.mark.parametrize(
        "desktop, packages",
        [
            (DesktopEnvironment.KDE, ["task-kde-desktop"]),
            (DesktopEnvironment.GNOME, ["task-gnome-desktop"]),
            (DesktopEnvironment.XFCE, ["task-xfce-desktop"]),
        ],
    )
    def test_one_install_per_desktop(self, config, apt_environment, runner, sleep, desktop, packages):
        selection = Selection(desktop, DisplayManager.NONE)
        context = make_context(config, apt_environment, runner, sleep, selection)
        run_pipeline(context, sleep)
        assert installs(runner) == [["curl"], packages]

    def test_pacman_desktop_set(self, config, pacman_environment, runner, sleep):
        selection = Selection(DesktopEnvironment.KDE, DisplayManager.NONE)
        context = make_context(config, pacman_environment, runner, sleep, selection)
        run_pipeline(context, sleep)
        assert installs(runner) == [
            ["--noprogressbar", "curl"],
            ["--noprogressbar", "plasma", "sddm", "plasma-wayland-session"],
        ]


class TestDisplayManager:
    def test_none_skips_install_and_enable(self, config, apt_environment, runner, sleep):
        selection = Selection(DesktopEnvironment.KDE, DisplayManager.NONE)
        context = make_context(config, apt_environment, runner, sleep, selection)
        pipeline = run_pipeline(context, sleep)
        assert installs(runner) == [["curl"], ["task-kde-desktop"]]
        assert enables(runner) == []
        assert PipelineStep.INSTALL_DISPLAY_MANAGER in pipeline.skipped
        assert PipelineStep.ENABLE_DISPLAY_MANAGER in pipeline.skipped

    @pytest.mark.parametrize(
        "display_manager, package, service",
        [(DisplayManager.SDDM, "sddm", "sddm"), (DisplayManager.GDM, "gdm3", "gdm")],
    )
    def test_install_and_enable_once(
        self, config, apt_environment, runner, sleep, display_manager, package, service
    ):
        selection = Selection(DesktopEnvironment.MINIMAL, display_manager)
        context = make_context(config, apt_environment, runner, sleep, selection)
        run_pipeline(context, sleep)
        assert installs(runner) == [["curl"], [package]]
        assert enables(runner) == [service]

    def test_enable_failure_still_reboots(self, config, apt_environment, sleep):
        runner = RecordingRunner(status_for=lambda cmd: 1 if cmd[0] == "systemctl" else 0)
        reboot = FakeReboot()
        context = make_context(config, apt_environment, runner, sleep)
        pipeline = run_pipeline(context, sleep, reboot)
        assert pipeline.status["enable_display_manager"]["status"] == "warning"
        assert ["apt-get", "autoremove", "-y"] in runner.commands
        assert reboot.calls == 1


class TestInstallFailures:
    def test_desktop_install_failure_is_fatal(self, config, apt_environment, sleep):
        runner = RecordingRunner(
            status_for=lambda cmd: 100 if "task-kde-desktop" in cmd else 0
        )
        reboot = FakeReboot()
        context = make_context(config, apt_environment, runner, sleep)
        with pytest.raises(SetupAbort):
            run_pipeline(context, sleep, reboot)
        assert enables(runner) == []
        assert reboot.calls == 0

    def test_cleanup_failure_is_best_effort(self, config, apt_environment, sleep):
        runner = RecordingRunner(status_for=lambda cmd: 1 if "autoremove" in cmd else 0)
        reboot = FakeReboot()
        context = make_context(config, apt_environment, runner, sleep)
        pipeline = run_pipeline(context, sleep, reboot)
        assert pipeline.status["cleanup"]["status"] == "warning"
        assert reboot.calls == 1


class TestVisuals:
    def test_installs_only_missing_tools(self, config, apt_environment, runner, sleep):
        context = make_context(config, apt_environment, runner, sleep)
        run_pipeline(context, sleep, exists=lambda name: name != "lolcat")
        assert ["lolcat"] in installs(runner)
        assert ["gum"] not in installs(runner)

    def test_visuals_follow_common_packages(self, config, apt_environment, runner, sleep):
        context = make_context(config, apt_environment, runner, sleep)
        run_pipeline(context, sleep, exists=lambda name: False)
        assert installs(runner)[:3] == [["curl"], ["figlet", "lolcat"], ["gum"]]

    def test_unavailable_ui_tool_is_a_warning(self, config, apt_environment, sleep):
        runner = RecordingRunner(status_for=lambda cmd: 100 if "gum" in cmd else 0)
        reboot = FakeReboot()
        context = make_context(config, apt_environment, runner, sleep)
        pipeline = run_pipeline(context, sleep, reboot, exists=lambda name: False)
        assert pipeline.status["install_visuals"]["status"] == "warning"
        assert PipelineStep.INSTALL_VISUALS in pipeline.completed
        assert ["task-kde-desktop"] in installs(runner)
        assert reboot.calls == 1

    def test_banner_tool_failure_is_fatal(self, config, apt_environment, sleep):
        runner = RecordingRunner(status_for=lambda cmd: 100 if "figlet" in cmd else 0)
        context = make_context(config, apt_environment, runner, sleep)
        with pytest.raises(SetupAbort):
            run_pipeline(context, sleep, exists=lambda name: False)
        assert ["gum"] not in installs(runner)

    def test_pacman_has_no_ui_tools(self, config, pacman_environment, runner, sleep):
        context = make_context(config, pacman_environment, runner, sleep)
        pipeline = run_pipeline(context, sleep, exists=lambda name: False)
        assert installs(runner)[1] == ["--noprogressbar", "figlet"]
        assert not any("gum" in cmd for cmd in runner.commands)
        assert pipeline.status["install_visuals"]["status"] == "success"


class TestScenarios:
    def test_non_interactive_with_failed_gum_refresh_completes(self, config, apt_environment):
        # negotiation exhausts its index refresh; the pipeline's refresh succeeds
        installed = {"whiptail"}
        exists = installed.__contains__
        runner = RecordingRunner(returncodes=[100] * 6)
        sleep = RecordingSleep()
        reboot = FakeReboot()
        manager = get_package_manager(
            apt_environment.package_manager,
            config=config,
            runner=runner,
            sleep=sleep,
            exists=exists,
        )
        context = RunContext(config, apt_environment, manager, non_interactive=True)

        backend = asyncio.run(
            CapabilityNegotiator(manager, non_interactive=True, exists=exists).negotiate()
        )
        assert backend is UIBackend.WHIPTAIL

        ui = ScriptedInterface(backend)
        context.freeze_ui(ui)
        context.set_selection(choose_selection(ui, non_interactive=True))
        assert context.selection == DEFAULT_SELECTION
        assert ui.prompts == []

        pipeline = InstallationPipeline(context, exists=exists, sleep=sleep, reboot=reboot)
        asyncio.run(pipeline.run())
        assert reboot.calls == 1
        assert ["task-kde-desktop"] in installs(runner)
        assert enables(runner) == ["sddm"]

    def test_non_interactive_when_apt_cannot_provide_gum(self, config, apt_environment):
        # no snap either, so negotiation settles on whiptail
        installed = {"whiptail"}
        exists = installed.__contains__
        runner = RecordingRunner(
            status_for=lambda cmd: 100 if cmd[:2] == ["apt-get", "install"] and "gum" in cmd else 0
        )
        sleep = RecordingSleep()
        reboot = FakeReboot()
        manager = get_package_manager(
            apt_environment.package_manager,
            config=config,
            runner=runner,
            sleep=sleep,
            exists=exists,
        )
        context = RunContext(config, apt_environment, manager, non_interactive=True)

        backend = asyncio.run(
            CapabilityNegotiator(manager, non_interactive=True, exists=exists).negotiate()
        )
        assert backend is UIBackend.WHIPTAIL

        ui = ScriptedInterface(backend)
        context.freeze_ui(ui)
        context.set_selection(choose_selection(ui, non_interactive=True))

        pipeline = InstallationPipeline(context, exists=exists, sleep=sleep, reboot=reboot)
        asyncio.run(pipeline.run())
        assert installs(runner).count(["gum"]) == 2
        assert pipeline.status["install_visuals"]["status"] == "warning"
        assert ["task-kde-desktop"] in installs(runner)
        assert enables(runner) == ["sddm"]
        assert len(ui.announcements) == 1
        assert reboot.calls == 1

    def test_interactive_xfce_with_gdm(self, config, apt_environment, runner, sleep):
        ui = ScriptedInterface(UIBackend.GUM, answers=["XFCE", "gdm"])
        context = make_context(config, apt_environment, runner, sleep, selection=None, ui=ui)
        context.set_selection(choose_selection(ui))
        run_pipeline(context, sleep)
        assert installs(runner) == [["curl"], ["task-xfce-desktop"], ["gdm3"]]
        assert enables(runner) == ["gdm"]
