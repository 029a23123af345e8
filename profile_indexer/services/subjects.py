from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.exceptions import NotFoundError
from profile_indexer.database.models import Person, PersonProject, Project, User
from profile_indexer.repositories.entity_repository import PersonProjectRepository, PersonRepository
from profile_indexer.repositories.project_repository import ProjectRepository, UserRepository


class SubjectValidator:
    """Existence checks shared by every entry point that starts work for a subject."""

    def __init__(self, session: AsyncSession):
        self.projects = ProjectRepository(session)
        self.persons = PersonRepository(session)
        self.users = UserRepository(session)
        self.links = PersonProjectRepository(session)

    async def require_project(self, project_id: int) -> Project:
        project = await self.projects.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def require_person(self, person_id: int) -> Person:
        person = await self.persons.get_by_id(person_id)
        if person is None:
            raise NotFoundError(f"Person {person_id} not found")
        return person

    async def require_user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def require_link(self, person_id: int, project_id: int) -> PersonProject:
        link = await self.links.get_link(person_id, project_id)
        if link is None:
            raise NotFoundError(f"Person {person_id} is not attached to project {project_id}")
        return link

    async def require_subject(self, project_id: int, person_id: int) -> Person:
        """Project, person and the link between them must all exist."""
        await self.require_project(project_id)
        person = await self.require_person(person_id)
        await self.require_link(person_id, project_id)
        return person
