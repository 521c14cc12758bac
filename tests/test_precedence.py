import unittest
from typing import Annotated

from wirebind import ContainerBuilder, Inject, inject


class DB:
    def __init__(self, label: str = "db"):
        self.label = label


class TestBindingNamePrecedence(unittest.TestCase):
    def setUp(self):
        self.default_db = DB("default")
        self.primary_db = DB("primary")
        self.replica_db = DB("replica")
        self.cont = (
            ContainerBuilder()
            .constant(DB, self.default_db)
            .constant(DB, self.primary_db, "primary")
            .constant(DB, self.replica_db, "replica")
            .create()
        )

    def test_unmarked_parameter_uses_default_name(self):
        class Repo:
            @inject()
            def __init__(self, db: DB):
                self.db = db

        assert self.cont.inject(Repo).db is self.default_db

    def test_constructor_marker_name_applies_to_every_parameter(self):
        class Repo:
            @inject("primary")
            def __init__(self, writer: DB, reader: DB):
                self.writer = writer
                self.reader = reader

        repo = self.cont.inject(Repo)
        assert repo.writer is self.primary_db
        assert repo.reader is self.primary_db

    def test_parameter_marker_overrides_constructor_marker_name(self):
        class Repo:
            @inject("primary")
            def __init__(self, writer: DB, reader: Annotated[DB, Inject("replica")]):
                self.writer = writer
                self.reader = reader

        repo = self.cont.inject(Repo)
        assert repo.writer is self.primary_db
        assert repo.reader is self.replica_db

    def test_parameter_marker_without_name_uses_default_even_under_named_constructor(self):
        class Repo:
            @inject("primary")
            def __init__(self, writer: DB, fallback: Annotated[DB, Inject()]):
                self.writer = writer
                self.fallback = fallback

        repo = self.cont.inject(Repo)
        assert repo.writer is self.primary_db
        assert repo.fallback is self.default_db

    def test_method_marker_name_applies_to_its_parameters(self):
        class Repo:
            @inject("replica")
            def use(self, db: DB, audit: Annotated[DB, Inject("primary")]):
                self.db = db
                self.audit = audit

        repo = Repo()
        self.cont.inject(repo)
        assert repo.db is self.replica_db
        assert repo.audit is self.primary_db

    def test_field_marker_name(self):
        class Repo:
            db: Annotated[DB, Inject("replica")]
            plain: DB

        repo = Repo()
        self.cont.inject(repo)
        assert repo.db is self.replica_db
        assert not hasattr(repo, "plain")
