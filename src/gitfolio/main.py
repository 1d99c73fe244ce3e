"""Gitfolio FastAPI application."""

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError as ModelValidationError

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=logging.INFO)

from gitfolio import __version__  # noqa: E402
from gitfolio.config import Settings, settings  # noqa: E402
from gitfolio.core.auth import GitHubOAuth, authorize_url, new_state  # noqa: E402
from gitfolio.core.collection import CollectionManager  # noqa: E402
from gitfolio.core.content import ContentReader, group_by_collection  # noqa: E402
from gitfolio.core.errors import (  # noqa: E402
    GitfolioError,
    NotFound,
    SaveFailed,
    Unauthorized,
    ValidationError,
)
from gitfolio.core.github import GitHubClient  # noqa: E402
from gitfolio.core.images import ImageStore  # noqa: E402
from gitfolio.core.importer import DescriptionGenerator, RepositoryImporter  # noqa: E402
from gitfolio.core.models import (  # noqa: E402
    BlogPost,
    CamelModel,
    Project,
    RepoConfig,
    Session,
    UserProfile,
)
from gitfolio.core.mutations import ContentMutator  # noqa: E402
from gitfolio.core.paths import ContentType  # noqa: E402
from gitfolio.core.sessions import ConfigStore, SessionStore  # noqa: E402
from gitfolio.core.storage import Repository  # noqa: E402
from gitfolio.deps import (  # noqa: E402
    get_config_store,
    get_describer,
    get_github_client,
    get_oauth,
    get_repo_config,
    get_repository,
    get_session,
    get_session_store,
    get_settings,
    get_writer_repository,
    require_session,
)

logger = logging.getLogger(__name__)

OAUTH_STATE_COOKIE = "gitfolio_oauth_state"
OAUTH_STATE_MAX_AGE = 10 * 60


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Gitfolio %s starting (store backend: %s, public repo: %s)",
        __version__,
        settings.store_backend,
        settings.public_repo or "none",
    )
    if not settings.github_token:
        logger.warning("GITFOLIO_GITHUB_TOKEN is not set; reads will return empty results")
    yield


app = FastAPI(
    title=settings.app_title,
    version=__version__,
    debug=settings.debug,
    lifespan=lifespan,
)


# ========== Error handlers ==========


@app.exception_handler(GitfolioError)
async def gitfolio_error_handler(request: Request, exc: GitfolioError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"error": exc.message}
    if isinstance(exc, SaveFailed):
        body["move"] = exc.move.to_json_dict()
    return JSONResponse(body, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in err['loc'][1:])}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        {"error": "Missing required fields", "details": details}, status_code=400
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# ========== Request bodies ==========


class ConfigRequest(CamelModel):
    repo: str = ""
    branch: str | None = None


class PushRequest(CamelModel):
    type: str
    id: str = ""
    content: dict[str, Any]
    old_collection: str | None = None


class DeleteItemRequest(CamelModel):
    type: str
    id: str
    collection: str | None = None


class CollectionRequest(CamelModel):
    type: str
    id: str
    name: str
    description: str | None = None


class DeleteImageRequest(CamelModel):
    url: str = ""


class CreateRepoRequest(CamelModel):
    name: str = ""
    description: str = ""
    is_private: bool = False


def _content_model(kind: ContentType, item_id: str, data: dict[str, Any]):
    """Validate a pushed content payload as the model for ``kind``."""
    try:
        if kind is ContentType.PROFILE:
            return UserProfile.model_validate(data)
        model = Project if kind is ContentType.PROJECT else BlogPost
        return model.model_validate({**data, "id": item_id})
    except ModelValidationError as e:
        raise ValidationError(
            f"Invalid {kind.value} content: {e.error_count()} error(s)"
        ) from e


# ========== Auth ==========


def _callback_url(config: Settings) -> str:
    return f"{config.app_url.rstrip('/')}/api/auth/callback"


def _admin_redirect(error: str | None = None) -> RedirectResponse:
    url = f"/admin?error={error}" if error else "/admin"
    return RedirectResponse(url, status_code=302)


@app.get("/api/auth/github")
async def auth_github(config: Settings = Depends(get_settings)):
    """Redirect to GitHub's OAuth consent page."""
    if not config.github_client_id:
        return JSONResponse({"error": "GitHub Client ID not configured"}, status_code=500)
    state = new_state()
    response = RedirectResponse(
        authorize_url(config.github_client_id, _callback_url(config), state),
        status_code=302,
    )
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        path="/",
        httponly=True,
        secure=config.cookie_secure,
        samesite="lax",
    )
    return response


@app.get("/api/auth/callback")
async def auth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    config: Settings = Depends(get_settings),
    oauth: GitHubOAuth = Depends(get_oauth),
    store: SessionStore = Depends(get_session_store),
):
    """Finish the OAuth flow and start a session."""
    if not code:
        return _admin_redirect("no_code")
    expected = request.cookies.get(OAUTH_STATE_COOKIE)
    if not state or not expected or not secrets.compare_digest(state, expected):
        logger.warning("OAuth state mismatch")
        return _admin_redirect("state_mismatch")

    try:
        session = await oauth.authenticate(
            code, _callback_url(config), config.session_max_age
        )
    except Unauthorized:
        return _admin_redirect("token_failed")
    except GitfolioError as e:
        logger.error("GitHub OAuth failed: %s", e.message)
        return _admin_redirect("oauth_failed")

    response = _admin_redirect()
    store.save(response, session)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    return response


@app.get("/api/auth/user")
async def auth_user(session: Session | None = Depends(get_session)):
    return {"user": session.user.to_json_dict() if session else None}


@app.api_route("/api/auth/logout", methods=["GET", "POST"])
async def auth_logout(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
):
    store.clear(request, response)
    return {"success": True}


# ========== Config ==========


@app.get("/api/config")
async def get_config(target: RepoConfig | None = Depends(get_repo_config)):
    if target is None:
        return {"repo": None, "branch": "main"}
    return target.to_json_dict()


@app.put("/api/config")
async def put_config(
    body: ConfigRequest,
    response: Response,
    session: Session = Depends(require_session),
    store: ConfigStore = Depends(get_config_store),
):
    if not body.repo:
        raise ValidationError("Repository is required")
    try:
        target = RepoConfig(repo=body.repo, branch=body.branch)
    except ModelValidationError as e:
        raise ValidationError(f"Invalid repository: {body.repo!r}") from e
    store.save(response, target)
    logger.info(
        "%s set repository to %s@%s", session.user.login, target.repo, target.branch
    )
    return {**target.to_json_dict(), "success": True}


# ========== Content reads ==========


@app.get("/api/github/profile")
async def get_profile(repository: Repository | None = Depends(get_repository)):
    if repository is None:
        return {"profile": None}
    profile = await ContentReader(repository).get_profile()
    return {"profile": profile.to_json_dict() if profile else None}


async def _list_items(repository: Repository | None, kind: ContentType) -> list[dict]:
    if repository is None:
        return []
    items = await ContentReader(repository).list_items(kind)
    return [item.to_json_dict() for item in items]


async def _grouped_items(repository: Repository | None, kind: ContentType) -> dict:
    if repository is None:
        return {"collections": [], "groups": [{"collection": None, "items": []}]}
    items, collections = await asyncio.gather(
        ContentReader(repository).list_items(kind),
        CollectionManager(repository).list_collections(kind),
    )
    groups = group_by_collection(items, collections)
    return {
        "collections": [c.to_json_dict() for c in collections],
        "groups": [
            {"collection": key, "items": [item.to_json_dict() for item in members]}
            for key, members in groups.items()
        ],
    }


@app.get("/api/github/projects")
async def get_projects(repository: Repository | None = Depends(get_repository)):
    return {"projects": await _list_items(repository, ContentType.PROJECT)}


@app.get("/api/github/projects/grouped")
async def get_projects_grouped(repository: Repository | None = Depends(get_repository)):
    return await _grouped_items(repository, ContentType.PROJECT)


@app.get("/api/github/blogs")
async def get_blogs(repository: Repository | None = Depends(get_repository)):
    return {"blogs": await _list_items(repository, ContentType.BLOG)}


@app.get("/api/github/blogs/grouped")
async def get_blogs_grouped(repository: Repository | None = Depends(get_repository)):
    return await _grouped_items(repository, ContentType.BLOG)


# ========== Collections ==========


@app.get("/api/github/collections")
async def get_collections(
    content_type: str = Query(..., alias="type"),
    repository: Repository | None = Depends(get_repository),
):
    kind = ContentType.parse(content_type)
    if repository is None:
        return {"collections": []}
    collections = await CollectionManager(repository).list_collections(kind)
    return {"collections": [c.to_json_dict() for c in collections]}


@app.post("/api/github/collections")
async def create_collection(
    body: CollectionRequest,
    repository: Repository = Depends(get_writer_repository),
):
    collection = await CollectionManager(repository).create_collection(
        body.type, body.id, body.name, body.description
    )
    return {"success": True, "collection": collection.to_json_dict()}


@app.delete("/api/github/collections")
async def delete_collection(
    content_type: str = Query(..., alias="type"),
    collection_id: str = Query("", alias="id"),
    repository: Repository = Depends(get_writer_repository),
):
    if not collection_id:
        raise ValidationError("Missing collection id")
    manager = CollectionManager(repository)
    report = await manager.delete_collection(content_type, collection_id)
    if not report.ok:
        return JSONResponse(
            {
                "success": False,
                "error": f"Failed to delete {len(report.failed)} file(s)",
                **report.to_json_dict(),
            },
            status_code=502,
        )
    return {"success": True, **report.to_json_dict()}


# ========== Push ==========


@app.put("/api/github/push")
async def push_item(
    body: PushRequest,
    session: Session = Depends(require_session),
    repository: Repository = Depends(get_writer_repository),
):
    """Create or update an item; ``oldCollection`` triggers a move.

    An absent ``oldCollection`` means no move; ``null`` names the root
    directory.
    """
    kind = ContentType.parse(body.type)
    item_id = body.id or ("profile" if kind is ContentType.PROFILE else "")
    content = _content_model(kind, item_id, body.content)

    old_collection = None
    if "old_collection" in body.model_fields_set:
        old_collection = body.old_collection or ""

    result = await ContentMutator(repository).save(kind, item_id, content, old_collection)
    logger.info("%s saved %s", session.user.login, result.path)
    return {"success": True, **result.to_json_dict()}


@app.delete("/api/github/push")
async def delete_item(
    body: DeleteItemRequest,
    repository: Repository = Depends(get_writer_repository),
):
    path = await ContentMutator(repository).delete(body.type, body.id, body.collection)
    return {"success": True, "path": path}


# ========== Images ==========


@app.post("/api/images/upload")
async def upload_image(
    file: UploadFile | None = File(None),
    image_type: str = Form("projects", alias="type"),
    repository: Repository = Depends(get_writer_repository),
    target: RepoConfig = Depends(get_repo_config),
    config: Settings = Depends(get_settings),
):
    if file is None:
        raise ValidationError("No file provided")
    data = await file.read()
    image = await ImageStore(repository, target, config.max_image_bytes).upload(
        image_type, file.filename or "image", file.content_type or "", data
    )
    return {"success": True, **image.to_json_dict()}


@app.post("/api/images/delete")
async def delete_image(
    body: DeleteImageRequest,
    repository: Repository = Depends(get_writer_repository),
    target: RepoConfig = Depends(get_repo_config),
    config: Settings = Depends(get_settings),
):
    path = await ImageStore(repository, target, config.max_image_bytes).delete(body.url)
    return {"success": True, "path": path}


# ========== GitHub account ==========


@app.get("/api/github/repos")
async def list_repos(github: GitHubClient = Depends(get_github_client)):
    return {"repos": await github.list_repos()}


@app.get("/api/github/repos/{owner}/{repo}")
async def import_repo(
    owner: str,
    repo: str,
    github: GitHubClient = Depends(get_github_client),
    describer: DescriptionGenerator | None = Depends(get_describer),
):
    """Build a draft project from an existing repository."""
    project = await RepositoryImporter(github, describer).import_repository(owner, repo)
    return {"project": project.to_json_dict()}


@app.get("/api/repo/check/{owner}/{repo}")
async def check_repo(
    owner: str,
    repo: str,
    github: GitHubClient = Depends(get_github_client),
):
    try:
        data = await github.get_repo(owner, repo)
    except NotFound:
        return {"exists": False}
    return {"exists": True, "repo": data}


@app.post("/api/repo/create")
async def create_repo(
    body: CreateRepoRequest,
    response: Response,
    github: GitHubClient = Depends(get_github_client),
    store: ConfigStore = Depends(get_config_store),
):
    """Create a repository and make it the content target."""
    if not body.name:
        raise ValidationError("Repository name is required")
    data = await github.create_repo(body.name, body.description, body.is_private)
    target = RepoConfig(repo=data["full_name"], branch=data.get("default_branch") or "main")
    store.save(response, target)
    logger.info("Created repository %s", target.repo)
    return {"success": True, "config": target.to_json_dict()}


# ========== Health ==========


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
