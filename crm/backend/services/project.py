"""
Project and Task Services.

Projects are kanban boards; tasks are their cards. Tasks created without
a project land in the default project's first column, both created on
demand.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import NotFoundError, ValidationError
from crm.backend.core.utils import utc_now
from crm.backend.models.client import Client
from crm.backend.models.project import (
    CARD_PRIORITIES,
    DEFAULT_COLUMNS,
    Project,
    ProjectCard,
    ProjectColumn,
)
from crm.backend.repositories.filters import TaskFilter
from crm.backend.repositories.project import (
    ProjectCardRepository,
    ProjectColumnRepository,
    ProjectRepository,
)
from crm.backend.services.base import BaseService

DEFAULT_PROJECT_NAME = "Général"
DEFAULT_COLUMN_NAME = DEFAULT_COLUMNS[0]


class ProjectService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = ProjectRepository(session, tenant_id)

    async def get(self, project_id: int) -> Project:
        return await self.repo.get_by_id(project_id)

    async def resolve(
        self,
        project_id: int | None = None,
        project_name: str | None = None,
    ) -> Project:
        if project_id is not None:
            return await self.repo.get_by_id(project_id)
        if project_name and project_name.strip():
            project = await self.repo.get_by_name(project_name)
            if project is None:
                matches = await self.repo.search(project_name, limit=1)
                project = matches[0] if matches else None
            if project is None:
                raise NotFoundError(f"Projet non trouvé: {project_name}")
            return project
        raise ValidationError("projectId ou projectName requis")

    async def list_projects(self, status: str | None = "active") -> list[Project]:
        clauses = [Project.status == status] if status else []
        return await self.repo.find(*clauses, order_by=Project.name)

    async def create(
        self,
        name: str,
        description: str | None = None,
        client: Client | None = None,
    ) -> Project:
        """Create a project with the default column set."""
        if not name or not name.strip():
            raise ValidationError("Le nom du projet est requis")
        project = await self._execute_db_operation(
            "create_project",
            self.repo.create(
                name=name.strip(),
                description=description,
                client=client,
                columns=[
                    ProjectColumn(name=column, position=position)
                    for position, column in enumerate(DEFAULT_COLUMNS)
                ],
            ),
        )
        self._log_operation("Project created", project_id=project.id)
        return project

    async def get_or_create_default(self) -> Project:
        project = await self.repo.get_by_name(DEFAULT_PROJECT_NAME)
        if project is None:
            project = await self.create(DEFAULT_PROJECT_NAME)
        return project


class TaskService(BaseService):
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session, tenant_id)
        self.repo = ProjectCardRepository(session, tenant_id)
        self.columns = ProjectColumnRepository(session, tenant_id)
        self.projects = ProjectService(session, tenant_id)

    async def get(self, task_id: int) -> ProjectCard:
        return await self.repo.get_by_id(task_id)

    async def resolve(
        self,
        task_id: int | None = None,
        title: str | None = None,
    ) -> ProjectCard:
        if task_id is not None:
            return await self.repo.get_by_id(task_id)
        if title and title.strip():
            matches = await self.repo.search(title, limit=1)
            if not matches:
                raise NotFoundError(f"Tâche non trouvée: {title}")
            return matches[0]
        raise ValidationError("taskId ou title requis")

    async def list_tasks(
        self,
        filters: TaskFilter | None = None,
        limit: int = 50,
    ) -> list[ProjectCard]:
        return await self.repo.find(
            *(filters or TaskFilter()).clauses(),
            order_by=[ProjectCard.is_completed, ProjectCard.due_date, ProjectCard.id],
            limit=limit,
        )

    async def _entry_column(self, project: Project) -> ProjectColumn:
        columns = await self.columns.list_for_project(project.id)
        for column in columns:
            if column.name == DEFAULT_COLUMN_NAME:
                return column
        if columns:
            return columns[0]
        return await self.columns.create(project_id=project.id, name=DEFAULT_COLUMN_NAME, position=0)

    async def create(
        self,
        title: str,
        description: str | None = None,
        priority: str = "medium",
        due_date: datetime | None = None,
        client: Client | None = None,
        project: Project | None = None,
    ) -> ProjectCard:
        if not title or not title.strip():
            raise ValidationError("Le titre de la tâche est requis")
        if priority not in CARD_PRIORITIES:
            raise ValidationError(f"Priorité invalide: {priority}")

        project = project or await self.projects.get_or_create_default()
        column = await self._entry_column(project)
        position = await self.repo.count(ProjectCard.column_id == column.id)
        card = await self._execute_db_operation(
            "create_task",
            self.repo.create(
                project=project,
                column_id=column.id,
                title=title.strip(),
                description=description,
                priority=priority,
                due_date=due_date,
                client=client,
                position=position,
            ),
        )
        self._log_operation("Task created", task_id=card.id, project_id=project.id)
        return card

    async def complete(self, card: ProjectCard, now: datetime | None = None) -> ProjectCard:
        card.is_completed = True
        card.completed_at = now or utc_now()
        await self.session.flush()
        self._log_operation("Task completed", task_id=card.id)
        return card
