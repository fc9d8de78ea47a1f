from __future__ import annotations

import os

import pytest

from bootstrap import create_portal


def test_portal_wires_storage_and_files(cfg):
    cfg.SEED_DEFAULTS = True
    with create_portal(cfg) as portal:
        assert portal.storage.backend == "memory"
        assert os.path.isdir(portal.files.upload_dir)
        assert portal.storage.get_user_by_username("vedanshu").is_admin


def test_portal_refuses_bad_config(cfg):
    cfg.STORAGE_BACKEND = "mongo"
    with pytest.raises(ValueError):
        create_portal(cfg)
