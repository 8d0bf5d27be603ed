"""
Profile stores - Local profile directory leases and session-to-profile pinning.

ProfileStore guards each persistent profile directory with a lock file so
two browser processes never open the same profile. ProfileAssignmentStore
keeps the same profile pinned to a conversation across restarts.
"""

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from autobrowse.exceptions import BrowserLaunchError
from autobrowse.utils.urls import sanitize_id

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".profile.lock.json"
MIN_LEASE_MS = 30_000
DEFAULT_LEASE_MS = 10 * 60 * 1000


@dataclass
class ProfileLease:
    """
    Exclusive use of one profile directory.
    
    Attributes:
        profile_id: Sanitized profile id
        profile_path: Profile directory
        lock_path: Lock file inside the directory
        lock_token: Token proving ownership of the lock
    """
    profile_id: str
    profile_path: Path
    lock_path: Path
    lock_token: str


def is_process_alive(pid: int) -> bool:
    """True if a process with this pid exists."""
    if not isinstance(pid, int) or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class ProfileStore:
    """
    Lease manager for persistent profile directories.
    
    A lock is stale (and taken over) when it expired, its pid is gone, or it
    belongs to this very process (left behind by an earlier session).
    
    Example:
        >>> store = ProfileStore("/tmp/profiles")
        >>> lease = store.acquire("Work Profile")
        >>> lease.profile_id
        'work-profile'
        >>> store.release(lease)
    """
    
    def __init__(self, root_dir: str, lease_ms: int = DEFAULT_LEASE_MS):
        self.root_dir = Path(root_dir)
        self.lease_ms = max(MIN_LEASE_MS, lease_ms)
        self.root_dir.mkdir(parents=True, exist_ok=True)
    
    def profile_path(self, profile_id: str) -> Path:
        return self.root_dir / sanitize_id(profile_id)
    
    def acquire(self, profile_id: str) -> ProfileLease:
        """
        Lock a profile directory for this process.
        
        Raises:
            BrowserLaunchError: If another live process holds the lease
        """
        safe_id = sanitize_id(profile_id)
        profile_path = self.profile_path(safe_id)
        profile_path.mkdir(parents=True, exist_ok=True)
        lock_path = profile_path / LOCK_FILE_NAME
        now = int(time.time() * 1000)
        
        current = self._read_lock(lock_path)
        if current:
            pid = current.get("pid")
            expired = int(current.get("expiresAt", 0)) <= now
            same_process = pid == os.getpid()
            if expired or same_process or not is_process_alive(pid):
                lock_path.unlink(missing_ok=True)
            else:
                raise BrowserLaunchError(
                    f"Profile '{safe_id}' is locked by pid {pid}. Wait and retry.",
                    {"profile_id": safe_id, "pid": pid},
                )
        
        token = str(uuid.uuid4())
        self._write_lock(lock_path, {
            "pid": os.getpid(),
            "lockToken": token,
            "createdAt": now,
            "expiresAt": now + self.lease_ms,
        })
        return ProfileLease(profile_id=safe_id, profile_path=profile_path, lock_path=lock_path, lock_token=token)
    
    def renew(self, lease: ProfileLease) -> None:
        """Push the lease expiry forward if we still own it."""
        lock = self._read_lock(lease.lock_path)
        if not lock or lock.get("lockToken") != lease.lock_token:
            return
        lock["expiresAt"] = int(time.time() * 1000) + self.lease_ms
        self._write_lock(lease.lock_path, lock)
    
    def release(self, lease: ProfileLease) -> None:
        """Remove the lock if we still own it."""
        lock = self._read_lock(lease.lock_path)
        if not lock or lock.get("lockToken") != lease.lock_token:
            return
        lease.lock_path.unlink(missing_ok=True)
    
    @staticmethod
    def _read_lock(lock_path: Path) -> Optional[Dict[str, Any]]:
        if not lock_path.exists():
            return None
        try:
            data = json.loads(lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return data if isinstance(data, dict) else None
    
    @staticmethod
    def _write_lock(lock_path: Path, data: Dict[str, Any]) -> None:
        lock_path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class ProfileAssignmentStore:
    """
    Persistent map of session id -> profile id.
    
    Stored as ``{"version": 1, "sessions": {...}}``. Reads treat a missing or
    corrupt file as empty; failed writes are logged and skipped.
    """
    
    FILE_NAME = "profile-assignments.json"
    
    def __init__(self, root_dir: str):
        self.root_dir = Path(root_dir)
        self.file_path = self.root_dir / self.FILE_NAME
    
    @staticmethod
    def normalize(value: str) -> str:
        return sanitize_id(value, fallback="")
    
    def get(self, session_id: str) -> Optional[str]:
        key = self.normalize(session_id)
        if not key:
            return None
        value = self._read().get(key)
        return (self.normalize(value) or None) if value else None
    
    def set(self, session_id: str, profile_id: str) -> None:
        key = self.normalize(session_id)
        value = self.normalize(profile_id)
        if not key or not value:
            return
        sessions = self._read()
        if sessions.get(key) == value:
            return
        sessions[key] = value
        self._write(sessions)
    
    def _read(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            data = json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        if not isinstance(data, dict):
            return {}
        sessions = data.get("sessions")
        if not isinstance(sessions, dict):
            return {}
        return {str(k): str(v) for k, v in sessions.items() if isinstance(v, str)}
    
    def _write(self, sessions: Dict[str, str]) -> None:
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            self.file_path.write_text(
                json.dumps({"version": 1, "sessions": sessions}, indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning(f"Profile assignment write skipped: {e}")
