"""Shared fixtures and helpers for tests."""

import json
from pathlib import Path
from typing import Any

import pytest

from alembic.config import Config
from openapi_synth.config import GeneratorConfig, SourceConfig
from openapi_synth.db import InMemoryMetadataStore
from openapi_synth.db.migrations import alembic_config
from openapi_synth.models import PathParameter, RouteDescriptor

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# MigrationTestBase: helpers for tests that need the alembic history
# ---------------------------------------------------------------------------


class MigrationTestBase:
    @staticmethod
    def get_alembic_config(db_url: str) -> Config:
        return alembic_config(db_url, _REPO_ROOT / "alembic.ini")

    @staticmethod
    def sqlite_url(path: Path) -> str:
        return f"sqlite+aiosqlite:///{path}"


# ---------------------------------------------------------------------------
# Sample Laravel project
# ---------------------------------------------------------------------------

PHP_FILES: dict[str, str] = {
    "app/Http/Controllers/UserController.php": """<?php

namespace App\\Http\\Controllers;

use App\\Http\\Requests\\StoreUserRequest;
use App\\Http\\Resources\\UserResource;
use Illuminate\\Http\\Request;
use Illuminate\\Support\\Facades\\Response;

class UserController extends Controller
{
    public function index(Request $request)
    {
        return UserResource::collection(User::paginate());
    }

    public function show(User $user)
    {
        return new UserResource($user);
    }

    public function store(StoreUserRequest $request)
    {
        $user = User::create($request->validated());
        return Response::created(new UserResource($user));
    }

    public function update(Request $request, User $user)
    {
        $data = $request->validate([
            'name' => 'sometimes|string|max:100',
            'avatar' => 'nullable|image',
        ]);
        $user->update($data);
        return UserResource::make($user);
    }
}
""",
    "app/Http/Requests/StoreUserRequest.php": """<?php

namespace App\\Http\\Requests;

use App\\Enums\\Role;
use Illuminate\\Foundation\\Http\\FormRequest;
use Illuminate\\Validation\\Rule;
use Illuminate\\Validation\\Rules\\Password;

/**
 * @queryParam invite string Invitation code
 */
class StoreUserRequest extends FormRequest
{
    public function rules(): array
    {
        return [
            'name' => 'required|string|max:255',
            'email' => ['required', 'email', Rule::unique('users')],
            'password' => ['required', Password::min(12)->mixedCase()],
            'role' => ['required', Rule::enum(Role::class)],
            'age' => 'integer|min:18',
            'address.city' => 'required|string',
            'tags.*' => 'string',
        ];
    }
}
""",
    "app/Enums/Role.php": """<?php

namespace App\\Enums;

enum Role: string
{
    case Admin = 'admin';
    case Member = 'member';
}
""",
    "app/Http/Resources/UserResource.php": """<?php

namespace App\\Http\\Resources;

use Illuminate\\Http\\Resources\\Json\\JsonResource;

class UserResource extends JsonResource
{
    public function toArray($request): array
    {
        return [
            'id' => $this->id,
            'name' => $this->name,
            'email' => $this->email,
            'is_admin' => $this->isAdmin(),
            'created_at' => $this->created_at,
            'team' => new TeamResource($this->whenLoaded('team')),
            'nickname' => $this->nickname ?? null,
            $this->mergeWhen($this->is_admin, [
                'permissions_count' => $this->permissions->count(),
            ]),
        ];
    }
}
""",
    "app/Http/Resources/TeamResource.php": """<?php

namespace App\\Http\\Resources;

use Illuminate\\Http\\Resources\\Json\\JsonResource;

class TeamResource extends JsonResource
{
    public function toArray($request): array
    {
        return [
            'id' => $this->id,
            'title' => $this->title,
        ];
    }
}
""",
}


def route(
    method: str,
    path: str,
    controller: str | None = "App\\Http\\Controllers\\UserController",
    action: str | None = "index",
    name: str | None = None,
    middleware: list[str] | None = None,
) -> RouteDescriptor:
    parameters = [
        PathParameter(name=segment.strip("{}?"), required=not segment.endswith("?}"))
        for segment in path.split("/")
        if segment.startswith("{")
    ]
    return RouteDescriptor(
        method=method,
        path=path,
        name=name,
        controller=controller,
        action=action,
        middleware=middleware or [],
        parameters=parameters,
    )


@pytest.fixture
def laravel_project(tmp_path: Path) -> Path:
    """A minimal Laravel source tree on disk."""
    for relative, content in PHP_FILES.items():
        target = tmp_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return tmp_path


@pytest.fixture
def project_config(laravel_project: Path) -> GeneratorConfig:
    return GeneratorConfig(source=SourceConfig(root=str(laravel_project)))


@pytest.fixture
def config() -> GeneratorConfig:
    return GeneratorConfig()


@pytest.fixture
def in_memory_store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture
def route_inventory(tmp_path: Path) -> Path:
    """``route:list --json`` output for the sample project."""
    entries: list[dict[str, Any]] = [
        {
            "domain": None,
            "method": "GET|HEAD",
            "uri": "api/users",
            "name": "users.index",
            "action": "App\\Http\\Controllers\\UserController@index",
            "middleware": ["api", "auth:sanctum", "throttle:60,1"],
        },
        {
            "domain": None,
            "method": "POST",
            "uri": "api/users",
            "name": "users.store",
            "action": "App\\Http\\Controllers\\UserController@store",
            "middleware": ["api", "auth:sanctum"],
        },
        {
            "domain": None,
            "method": "GET|HEAD",
            "uri": "api/users/{user}",
            "name": "users.show",
            "action": "App\\Http\\Controllers\\UserController@show",
            "middleware": ["api"],
            "wheres": {"user": "[0-9]+"},
        },
        {
            "domain": None,
            "method": "GET|HEAD",
            "uri": "/",
            "name": None,
            "action": "Closure",
            "middleware": ["web"],
        },
    ]
    target = tmp_path / "routes.json"
    target.write_text(json.dumps(entries), encoding="utf-8")
    return target
