"""Pytest configuration and fixtures."""

import dataclasses
import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from panel_protect.config import InstallerSettings
from panel_protect.external.runner import CommandResult, CommandRunner
from panel_protect.external.services import Collaborators, PrivilegeChecker

# Keep the developer's environment out of settings resolution
for _name in list(os.environ):
    if _name.startswith("PP_"):
        del os.environ[_name]


KERNEL_PHP = """<?php

namespace Pterodactyl\\Http;

use Illuminate\\Foundation\\Http\\Kernel as HttpKernel;

class Kernel extends HttpKernel
{
    protected $middleware = [
        \\Pterodactyl\\Http\\Middleware\\TrustProxies::class,
    ];

    protected $routeMiddleware = [
        'auth' => \\Pterodactyl\\Http\\Middleware\\Authenticate::class,
        'guest' => \\Pterodactyl\\Http\\Middleware\\RedirectIfAuthenticated::class,
    ];
}
"""

ROUTES_PHP = """<?php

use Illuminate\\Support\\Facades\\Route;
use Pterodactyl\\Http\\Controllers\\Admin;

Route::get('/', [Admin\\BaseController::class, 'index'])->name('admin.index');

Route::group(['prefix' => 'settings'], function () {
    Route::get('/', [Admin\\Settings\\IndexController::class, 'index'])->name('admin.settings');
    Route::patch('/', [Admin\\Settings\\IndexController::class, 'update']);
});
"""

SETTINGS_VIEW = """@extends('layouts.admin')

@section('content')
<div class="row">
    <form action="{{ route('admin.settings') }}" method="POST">
        <div class="box">
            <input type="text" name="app:name" class="form-control">
        </div>
        {!! method_field('PATCH') !!}
        <button type="submit" class="btn btn-sm btn-primary">Save</button>
    </form>
</div>
@endsection
"""

FORMLESS_SETTINGS_VIEW = """@extends('layouts.admin')

@section('content')
<div class="row">
    <p>General settings</p>
</div>
@endsection
"""

SETTINGS_CONTROLLER = """<?php

namespace Pterodactyl\\Http\\Controllers\\Admin\\Settings;

class IndexController extends Controller
{
    public function index()
    {
        return view('admin.settings.index');
    }
}
"""


class FakeCommandRunner(CommandRunner):
    """
    Records commands instead of running them.

    ``missing`` names executables ``which`` cannot find; ``failures`` maps a
    command prefix to the exit status it returns.
    """

    def __init__(
        self,
        missing: tuple[str, ...] = (),
        failures: dict[str, int] | None = None,
        stdout: dict[str, str] | None = None,
    ):
        super().__init__()
        self.missing = set(missing)
        self.failures = failures or {}
        self.stdout = {"systemctl list-units": "pteroq.service loaded active running\n"}
        self.stdout.update(stdout or {})
        self.calls: list[list[str]] = []
        self.timeouts: dict[str, float | None] = {}

    def which(self, name: str) -> str | None:
        return None if name in self.missing else f"/usr/bin/{name}"

    def run(self, argv, *, cwd=None, timeout=None, stdout_path=None) -> CommandResult:
        self.calls.append(list(argv))
        command = " ".join(argv)
        self.timeouts[command] = timeout

        returncode = 0
        for prefix, code in self.failures.items():
            if command.startswith(prefix):
                returncode = code

        out = ""
        for prefix, text in self.stdout.items():
            if command.startswith(prefix):
                out = text
        if stdout_path is not None:
            Path(stdout_path).write_text("-- dump\n")
            out = ""

        return CommandResult(
            argv=list(argv),
            returncode=returncode,
            stdout=out,
            stderr="" if returncode == 0 else "command failed",
        )

    @property
    def commands(self) -> list[str]:
        return [" ".join(call) for call in self.calls]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def panel_dir(temp_dir: Path) -> Path:
    """Provide a minimal Pterodactyl tree with the files the installer patches."""
    panel = temp_dir / "pterodactyl"
    files = {
        "app/Http/Kernel.php": KERNEL_PHP,
        "routes/admin.php": ROUTES_PHP,
        "resources/views/admin/settings/index.blade.php": SETTINGS_VIEW,
        "app/Http/Controllers/Admin/Settings/IndexController.php": SETTINGS_CONTROLLER,
    }
    for relative, content in files.items():
        path = panel / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)

    (panel / "app/Http/Middleware").mkdir(parents=True)
    (panel / "database/migrations").mkdir(parents=True)
    (panel / "storage").mkdir()
    return panel


@pytest.fixture
def settings(temp_dir: Path, panel_dir: Path) -> InstallerSettings:
    """Provide settings pointing every location into the temporary directory."""
    return InstallerSettings(
        panel_path=panel_dir,
        backup_root=temp_dir / "backups",
        state_dir=temp_dir / "state",
    )


@pytest.fixture
def fake_runner() -> FakeCommandRunner:
    """Provide a command runner where every command succeeds."""
    return FakeCommandRunner()


def make_collaborators(
    settings: InstallerSettings, runner: CommandRunner, privileged: bool = True
) -> Collaborators:
    """Build real collaborators over ``runner`` with a fixed privilege answer."""
    collaborators = Collaborators.from_settings(settings, runner)
    euid = 0 if privileged else 1000
    return dataclasses.replace(collaborators, privileges=PrivilegeChecker(geteuid=lambda: euid))


@pytest.fixture
def collaborators(settings: InstallerSettings, fake_runner: FakeCommandRunner) -> Collaborators:
    """Provide privileged collaborators backed by ``fake_runner``."""
    return make_collaborators(settings, fake_runner)


def snapshot(root: Path) -> dict[str, bytes]:
    """Map every file under ``root`` to its bytes."""
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }
