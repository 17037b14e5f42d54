"""Task and project tools."""

from datetime import timedelta

from crm.backend.agents.assistant.tools.base import (
    CLIENT_REF,
    ToolCall,
    boolean,
    enum,
    integer,
    string,
    tool,
)
from crm.backend.agents.assistant.tools.views import project_view, task_view
from crm.backend.models.project import CARD_PRIORITIES
from crm.backend.repositories.filters import TaskFilter
from crm.backend.services.project import ProjectService, TaskService


@tool(
    "create_task",
    "Créer une tâche (dans le projet « Général » si aucun projet n'est précisé)",
    {
        "title": string("Intitulé de la tâche"),
        "description": string("Détails"),
        "priority": enum(CARD_PRIORITIES, "Priorité, medium par défaut"),
        "dueDate": string("Échéance (« demain », « lundi 14h », « 15/03 »...)"),
        "projectName": string("Projet de rattachement"),
        **CLIENT_REF,
    },
    required=("title",),
)
async def create_task(call: ToolCall):
    project = None
    if call.get("projectName"):
        project = await ProjectService(call.session, call.tenant_id).resolve(
            project_name=call.get("projectName"),
        )
    card = await TaskService(call.session, call.tenant_id).create(
        call.require("title"),
        description=call.get("description"),
        priority=call.get("priority", "medium"),
        due_date=call.datetime_arg("dueDate"),
        client=await call.client(required=False),
        project=project,
    )
    return {"created": True, **task_view(call, card)}


@tool(
    "list_tasks",
    "Lister les tâches ouvertes",
    {
        "priority": enum(CARD_PRIORITIES, "Filtrer par priorité"),
        "overdue": boolean("Seulement les tâches en retard"),
        "dueWithinDays": integer("Échéance dans les N prochains jours"),
        "includeCompleted": boolean("Inclure les tâches terminées"),
        **CLIENT_REF,
        "limit": integer("Nombre maximum de tâches"),
    },
)
async def list_tasks(call: ToolCall):
    now = call.now_utc()
    due_before = None
    if call.get("overdue"):
        due_before = now
    elif call.int_arg("dueWithinDays") is not None:
        due_before = now + timedelta(days=call.int_arg("dueWithinDays"))
    client = await call.client(required=False)
    cards = await TaskService(call.session, call.tenant_id).list_tasks(
        TaskFilter(
            completed=None if call.get("includeCompleted") else False,
            priority=call.get("priority"),
            client_id=client.id if client else None,
            due_before=due_before,
        ),
        limit=call.int_arg("limit") or 20,
    )
    return [task_view(call, c) for c in cards]


@tool(
    "complete_task",
    "Marquer une tâche comme terminée (par identifiant ou intitulé)",
    {"taskId": integer("Identifiant de la tâche"), "title": string("Intitulé approximatif")},
)
async def complete_task(call: ToolCall):
    tasks = TaskService(call.session, call.tenant_id)
    card = await tasks.resolve(call.int_arg("taskId"), call.get("title"))
    card = await tasks.complete(card, now=call.now_utc())
    return {"completed": True, **task_view(call, card)}


@tool("list_projects", "Lister les projets actifs")
async def list_projects(call: ToolCall):
    projects = await ProjectService(call.session, call.tenant_id).list_projects()
    return [project_view(p) for p in projects]


@tool(
    "create_project",
    "Créer un projet avec les colonnes À faire / En cours / Terminé",
    {"name": string("Nom du projet"), "description": string("Description"), **CLIENT_REF},
    required=("name",),
)
async def create_project(call: ToolCall):
    project = await ProjectService(call.session, call.tenant_id).create(
        call.require("name"),
        description=call.get("description"),
        client=await call.client(required=False),
    )
    return {"created": True, **project_view(project)}


@tool(
    "get_project",
    "Détail d'un projet et de ses tâches ouvertes",
    {"projectId": integer("Identifiant du projet"), "projectName": string("Nom du projet")},
)
async def get_project(call: ToolCall):
    project = await ProjectService(call.session, call.tenant_id).resolve(
        call.int_arg("projectId"), call.get("projectName"),
    )
    cards = await TaskService(call.session, call.tenant_id).list_tasks(
        TaskFilter(project_id=project.id), limit=50,
    )
    return {**project_view(project), "openTasks": [task_view(call, c) for c in cards]}
