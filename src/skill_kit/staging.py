"""Staging: turn a folder, ZIP file or GitHub repository into installable skills.

Staged content is only read from; installing copies it into the canonical
store, so callers are free to throw the staging directory away afterwards.
"""

import io
import logging
import os
import re
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Tuple, Union

import httpx

from .descriptor import read_skill_name
from .errors import InvalidDescriptor, NotFoundError, SkillKitError, wrap_errors
from .paths import APP_NAME, IGNORED_DIRS, SKILL_FILE, is_under

logger = logging.getLogger(__name__)

GITHUB_ARCHIVE_URL = "https://github.com/{owner}/{repo}/archive/refs/heads/{branch}.zip"
GITHUB_TREE_URL = "https://api.github.com/repos/{owner}/{repo}/git/trees/{branch}?recursive=1"
DEFAULT_BRANCHES = ("main", "master")


@dataclass(frozen=True)
class StagedSkill:
    name: str
    path: Path
    skill_path: str  # POSIX path of SKILL.md relative to the staging root


# =============================================================================
# GitHub API Helpers
# =============================================================================

def get_github_token(cli_token: Optional[str] = None) -> Optional[str]:
    """Return GitHub token from CLI arg, GH_TOKEN, or GITHUB_TOKEN env var."""
    token = (cli_token or os.getenv("GH_TOKEN") or os.getenv("GITHUB_TOKEN") or "").strip()
    return token if token else None


def get_github_auth_headers(cli_token: Optional[str] = None) -> Dict[str, str]:
    """Return Authorization header dict if token exists."""
    token = get_github_token(cli_token)
    return {"Authorization": f"Bearer {token}"} if token else {}


def parse_github_url(url: str) -> Tuple[str, str]:
    """Accepts ``https://github.com/owner/repo[.git][/...]`` or ``owner/repo``."""
    url = url.strip()
    if "github.com" in url:
        path = re.split(r"github\.com[/:]", url, maxsplit=1)[-1]
        segments = [s for s in path.split("/") if s]
        if len(segments) < 2:
            raise SkillKitError(f"Invalid GitHub URL: {url}")
        return segments[0], re.sub(r"\.git$", "", segments[1])

    parts = url.split("/")
    if len(parts) == 2 and all(parts):
        return parts[0], parts[1]
    raise SkillKitError("Unsupported URL format. Use https://github.com/owner/repo or owner/repo")


def _headers(token: Optional[str]) -> Dict[str, str]:
    return {"User-Agent": APP_NAME, **get_github_auth_headers(token)}


# =============================================================================
# Detection
# =============================================================================

def detect_skills(root: Union[str, Path]) -> List[StagedSkill]:
    """Every folder under ``root`` holding a SKILL.md with a name."""
    root = Path(root)
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        if SKILL_FILE not in filenames:
            continue
        skill_dir = Path(dirpath)
        try:
            name = read_skill_name(skill_dir)
        except InvalidDescriptor as e:
            logger.debug("Ignoring %s: %s", skill_dir, e)
            continue
        found.append(StagedSkill(
            name=name,
            path=skill_dir,
            skill_path=(skill_dir / SKILL_FILE).relative_to(root).as_posix(),
        ))
    return sorted(found, key=lambda s: s.skill_path)


def stage_folder(path: Union[str, Path]) -> List[StagedSkill]:
    path = Path(path).expanduser()
    if not path.is_dir():
        raise NotFoundError(f"Folder does not exist: {path}")
    return detect_skills(path)


# =============================================================================
# Archives
# =============================================================================

def _extract(archive: zipfile.ZipFile, dest: Path, strip_root: bool = False):
    """Extract ``archive`` into ``dest``, refusing entries that would escape it."""
    dest.mkdir(parents=True, exist_ok=True)
    for info in archive.infolist():
        parts = PurePosixPath(info.filename.replace("\\", "/")).parts
        if strip_root:
            parts = parts[1:]
        if not parts:
            continue
        if ".." in parts or parts[0] == "/" or not is_under(dest.joinpath(*parts), dest):
            raise SkillKitError(f"Unsafe path in archive: {info.filename}")

        target = dest.joinpath(*parts)
        if info.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(info) as src, open(target, "wb") as out:
            shutil.copyfileobj(src, out)


def stage_zip(zip_path: Union[str, Path], dest: Union[str, Path]) -> List[StagedSkill]:
    zip_path = Path(zip_path).expanduser()
    dest = Path(dest)
    if not zip_path.is_file():
        raise NotFoundError(f"ZIP file does not exist: {zip_path}")
    try:
        with zipfile.ZipFile(zip_path) as archive:
            with wrap_errors(f"Failed to extract {zip_path}"):
                _extract(archive, dest)
    except zipfile.BadZipFile as e:
        raise SkillKitError(f"Failed to parse ZIP archive {zip_path}: {e}") from e
    return detect_skills(dest)


# =============================================================================
# GitHub
# =============================================================================

def stage_github(
    url: str,
    dest: Union[str, Path],
    client: Optional[httpx.Client] = None,
    token: Optional[str] = None,
) -> List[StagedSkill]:
    """Download a repository archive (``main``, then ``master``) and detect skills.

    No git binary is needed; the archive's top-level folder is stripped.
    """
    owner, repo = parse_github_url(url)
    dest = Path(dest)
    own_client = client is None
    client = client or httpx.Client(timeout=60, follow_redirects=True)
    last_error = "no branch found"

    try:
        for branch in DEFAULT_BRANCHES:
            archive_url = GITHUB_ARCHIVE_URL.format(owner=owner, repo=repo, branch=branch)
            logger.debug("Downloading %s", archive_url)
            try:
                response = client.get(archive_url, headers=_headers(token))
            except httpx.HTTPError as e:
                last_error = str(e)
                continue
            if response.status_code != 200:
                last_error = f"HTTP error: {response.status_code}"
                continue

            try:
                with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
                    with wrap_errors(f"Failed to extract {archive_url}"):
                        _extract(archive, dest, strip_root=True)
            except zipfile.BadZipFile as e:
                shutil.rmtree(dest, ignore_errors=True)
                last_error = f"Failed to parse ZIP archive: {e}"
                continue
            return detect_skills(dest)
    finally:
        if own_client:
            client.close()

    raise SkillKitError(f"Failed to download repository {owner}/{repo}: {last_error}")


def fetch_github_folder_sha(
    url: str,
    skill_path: str,
    client: Optional[httpx.Client] = None,
    token: Optional[str] = None,
    branch: str = "main",
) -> str:
    """Git tree SHA of the folder holding ``skill_path`` on GitHub.

    Used as the recorded folder hash for GitHub installs, so that a later
    lookup of the same folder tells whether upstream changed.
    """
    owner, repo = parse_github_url(url)
    normalized = skill_path.strip()
    if normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized == SKILL_FILE:
        folder = ""
    elif normalized.endswith("/" + SKILL_FILE):
        folder = normalized[: -len("/" + SKILL_FILE)]
    else:
        raise SkillKitError(f"Invalid skill_path: {skill_path}")

    own_client = client is None
    client = client or httpx.Client(timeout=30, follow_redirects=True)
    tree_url = GITHUB_TREE_URL.format(owner=owner, repo=repo, branch=branch)
    try:
        response = client.get(tree_url, headers=_headers(token))
    except httpx.HTTPError as e:
        raise SkillKitError(f"Failed to request GitHub tree: {e}") from e
    finally:
        if own_client:
            client.close()

    if response.status_code != 200:
        raise SkillKitError(f"GitHub API returned status {response.status_code}")
    try:
        tree = response.json()
    except ValueError as e:
        raise SkillKitError(f"Failed to parse GitHub tree response: {e}") from e

    if not folder:
        return tree["sha"]
    for item in tree.get("tree", []):
        if item.get("type") == "tree" and item.get("path") == folder:
            return item["sha"]
    raise NotFoundError(f"Skill folder not found in GitHub tree: {folder}")
