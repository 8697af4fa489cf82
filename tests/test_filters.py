import unittest

from sqlmodel import select

from src.domain.access import policy
from src.domain.access.filters import readable_members_clause, readable_modules_clause, readable_projects_clause
from src.domain.modules.models import Module
from src.domain.projects.models import Project, ProjectMember
from src.domain.users.models import Role
from tests.base import BaseTest


class TestRowFilters(BaseTest):
    """The SQL row filters must select exactly the rows the read predicates allow."""

    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.stranger = await self.make_user("qa")

        self.gateway = await self.make_project("Gateway")
        self.ledger = await self.make_project("Ledger")
        self.payouts = await self.make_project("Payouts")

        # dev is a member of Gateway and assignee of a Ledger module only
        await self.add_membership(self.gateway, self.users[Role.DEV])
        await self.add_membership(self.payouts, self.users[Role.DESIGNER])
        await self.add_membership(self.gateway, self.stranger)

        await self.make_module(self.gateway, "Auth Service")
        await self.make_module(self.ledger, "Reconciliation", assigned_dev=self.users[Role.DEV])
        await self.make_module(self.ledger, "Exports")
        await self.make_module(self.payouts, "Webhooks", assigned_dev=self.users[Role.LEAD])

    async def _actors(self):
        actors = [await self.actor(role) for role in Role.known()]
        actors.append(await self.actor(self.stranger))
        return actors

    async def test_projects_clause_matches_predicate(self) -> None:
        everything = (await self.session.exec(select(Project))).all()
        for actor in await self._actors():
            with self.subTest(role=actor.role.value):
                filtered = (await self.session.exec(select(Project).where(readable_projects_clause(actor)))).all()
                expected = {p.id for p in everything if policy.can_read_project(actor, p)}
                self.assertEqual({p.id for p in filtered}, expected)

    async def test_modules_clause_matches_predicate(self) -> None:
        everything = (await self.session.exec(select(Module))).all()
        for actor in await self._actors():
            with self.subTest(role=actor.role.value):
                filtered = (await self.session.exec(select(Module).where(readable_modules_clause(actor)))).all()
                expected = {m.id for m in everything if policy.can_read_module(actor, m)}
                self.assertEqual({m.id for m in filtered}, expected)

    async def test_members_clause_matches_predicate(self) -> None:
        everything = (await self.session.exec(select(ProjectMember))).all()
        for actor in await self._actors():
            with self.subTest(role=actor.role.value):
                statement = select(ProjectMember).where(readable_members_clause(actor))
                filtered = (await self.session.exec(statement)).all()
                expected = {m.id for m in everything if policy.can_read_project_member(actor, m)}
                self.assertEqual({m.id for m in filtered}, expected)

    async def test_assignee_sees_module_outside_membership(self) -> None:
        dev = await self.actor(Role.DEV)
        names = {m.module_name for m in (await self.session.exec(select(Module).where(readable_modules_clause(dev))))}
        self.assertEqual(names, {"Auth Service", "Reconciliation"})

    async def test_unknown_role_sees_nothing(self) -> None:
        actor = await self.actor(self.stranger)
        self.assertEqual((await self.session.exec(select(Project).where(readable_projects_clause(actor)))).all(), [])


if __name__ == "__main__":
    unittest.main()
