"""
Menu protection ("Proteksi Menu") for the Pterodactyl admin panel.

When enabled, an admin other than a root admin can only open servers they
own. The pieces installed:

- two columns on ``settings``: ``menu_protection_enabled``, ``menu_protection_message``
- ``CheckServerOwnership`` middleware, registered as ``server.ownership``
- a "Proteksi Menu" section in the admin settings view
- for the dedicated-endpoint layout: a route and a controller method saving the section

Markers below must stay stable across releases of this content so that
re-runs recognise earlier installs.
"""

from panel_protect.core.models import Anchor, AnchorPosition, InsertSide
from panel_protect.migrations.generator import FieldSpec
from panel_protect.patching.base import ArtifactPatch
from panel_protect.patching.registry import HOOK_LIST_OPENING
from panel_protect.patching.template import FORM_CLOSING, SECTION_CLOSING

FEATURE_TITLE = "Proteksi Menu"

MIGRATION_NAME = "add_menu_protection_settings"
MIGRATION_TABLE = "settings"
MIGRATION_FIELDS = [
    FieldSpec("menu_protection_enabled", "boolean", nullable=False, default=False),
    FieldSpec("menu_protection_message", "text", nullable=True),
]

HOOK_KEY = "server.ownership"
ROUTE_NAME = "admin.settings.menu-protection"
ROUTE_PATH = "/settings/menu-protection"
CONTROLLER_METHOD = "updateMenuProtection"
MIDDLEWARE_FILENAME = "CheckServerOwnership.php"

# Any of these in the route table means an endpoint already exists
ROUTE_MARKERS = (ROUTE_NAME, ROUTE_PATH)

MIDDLEWARE_SOURCE = r"""<?php

namespace Pterodactyl\Http\Middleware;

use Closure;
use Illuminate\Http\Request;
use Pterodactyl\Models\Server;
use Pterodactyl\Models\Setting;
use Symfony\Component\HttpKernel\Exception\AccessDeniedHttpException;

class CheckServerOwnership
{
    public function handle(Request $request, Closure $next)
    {
        try {
            $settings = Setting::first();
        } catch (\Exception $e) {
            $settings = null;
        }

        // Skip if settings not found or protection disabled or user is root admin
        if (!$settings || !($settings->menu_protection_enabled ?? false) || ($request->user() && $request->user()->root_admin)) {
            return $next($request);
        }

        $serverId = $this->getServerIdFromRequest($request);

        if ($serverId) {
            $server = Server::find($serverId);

            if ($server && $server->owner_id !== ($request->user()->id ?? null)) {
                $message = $settings->menu_protection_message ?? 'Anda tidak memiliki akses ke server ini.';
                throw new AccessDeniedHttpException($message);
            }
        }

        return $next($request);
    }

    private function getServerIdFromRequest(Request $request)
    {
        foreach (['server', 'id', 'server_id'] as $parameter) {
            if ($request->route($parameter)) {
                return $request->route($parameter);
            }
        }

        return null;
    }
}
"""

KERNEL_ENTRY = (
    "        'server.ownership' => \\Pterodactyl\\Http\\Middleware\\CheckServerOwnership::class,"
)

ROUTE_ENTRY = (
    "    Route::post('/settings/menu-protection', "
    "[\\Pterodactyl\\Http\\Controllers\\Admin\\Settings\\IndexController::class, 'updateMenuProtection'])"
    "->name('admin.settings.menu-protection');"
)

CONTROLLER_METHOD_SOURCE = r"""
    /**
     * Save the Proteksi Menu settings.
     */
    public function updateMenuProtection(\Illuminate\Http\Request $request): \Illuminate\Http\RedirectResponse
    {
        $settings = \Pterodactyl\Models\Setting::first();
        if ($settings) {
            $settings->menu_protection_enabled = $request->boolean('menu_protection_enabled');
            $settings->menu_protection_message = $request->input('menu_protection_message');
            $settings->save();
        }

        return redirect()->route('admin.settings')->with('success', 'Pengaturan Proteksi Menu disimpan.');
    }"""

_FIELDS_HTML = """            <div class="form-group">
                <label for="menu_protection_enabled">Aktifkan Proteksi Anti-Intip</label>
                <div>
                    <input type="checkbox" name="menu_protection_enabled" id="menu_protection_enabled"
                           value="1" {{ old('menu_protection_enabled', $settings->get('menu_protection_enabled')) ? 'checked' : '' }}>
                    <p class="text-muted small">
                        Jika diaktifkan, admin hanya dapat melihat server yang mereka buat sendiri.
                    </p>
                </div>
            </div>

            <div class="form-group">
                <label for="menu_protection_message">Pesan Proteksi</label>
                <textarea name="menu_protection_message" id="menu_protection_message"
                          class="form-control" rows="3"
                          placeholder="Masukkan pesan yang akan ditampilkan ketika admin mencoba mengintip server lain">{{ old('menu_protection_message', $settings->get('menu_protection_message')) }}</textarea>
                <p class="text-muted small">
                    Pesan ini akan ditampilkan ketika admin mencoba mengakses server yang bukan miliknya.
                </p>
            </div>"""

_BOX_HEADER = """    <div class="box box-primary">
        <div class="box-header with-border">
            <h3 class="box-title">
                <i class="fa fa-shield"></i> Proteksi Menu
            </h3>
        </div>"""

# Joins the existing settings form; saved by the existing settings endpoint
SETTINGS_VIEW_BLOCK = f"""    <!-- Proteksi Menu Section -->
{_BOX_HEADER}
        <div class="box-body">
{_FIELDS_HTML}
        </div>
    </div>"""

# Standalone form posting to the dedicated endpoint
DEDICATED_VIEW_BLOCK = f"""    <!-- Proteksi Menu Section -->
    <form action="{{{{ route('admin.settings.menu-protection') }}}}" method="POST">
{_BOX_HEADER}
        <div class="box-body">
{_FIELDS_HTML}
        </div>
        <div class="box-footer">
            {{!! csrf_field() !!}}
            <button type="submit" class="btn btn-sm btn-primary pull-right">Simpan</button>
        </div>
    </div>
    </form>"""

CONTROLLER_CLASS_CLOSING = Anchor(
    pattern=r"^\}\s*$",
    position=AnchorPosition.LAST,
    side=InsertSide.BEFORE,
    regex=True,
)


def kernel_patch() -> ArtifactPatch:
    """Middleware alias registration in the HTTP kernel."""
    return ArtifactPatch(
        name="middleware registration",
        marker=HOOK_KEY,
        anchor=HOOK_LIST_OPENING,
        block=KERNEL_ENTRY,
    )


def controller_patch() -> ArtifactPatch:
    """Controller method backing the dedicated endpoint."""
    return ArtifactPatch(
        name="controller method",
        marker=f"function {CONTROLLER_METHOD}",
        anchor=CONTROLLER_CLASS_CLOSING,
        block=CONTROLLER_METHOD_SOURCE,
    )


def view_patch(dedicated_endpoint: bool = False) -> ArtifactPatch:
    """Settings view section for the given layout."""
    if dedicated_endpoint:
        return ArtifactPatch(
            name="settings view section",
            marker=FEATURE_TITLE,
            anchor=SECTION_CLOSING,
            block=DEDICATED_VIEW_BLOCK,
        )
    return ArtifactPatch(
        name="settings view section",
        marker=FEATURE_TITLE,
        anchor=FORM_CLOSING,
        block=SETTINGS_VIEW_BLOCK,
    )


USAGE_STEPS = [
    "Log in as the admin with ID 1",
    "Go to Admin -> Settings",
    f"Scroll to the '{FEATURE_TITLE}' section",
    "Enable the feature and set the message",
    "Save settings",
]
