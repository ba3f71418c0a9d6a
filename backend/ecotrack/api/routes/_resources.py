# backend/ecotrack/api/routes/_resources.py
# Fabrique de routeurs CRUD + participation, partagée par /challenges et /events.

from datetime import datetime
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ecotrack.api.dto.response_format import SuccessResponse
from ecotrack.core.security import CurrentUserId, OptionalUserId
from ecotrack.core.settings import get_settings
from ecotrack.core.utils import as_utc
from ecotrack.db.mongodb import get_db
from ecotrack.models.resource_dto import (
    CreatedListOut,
    DeleteOut,
    JoinedListOut,
    JoinOut,
    ParticipantsOut,
    ParticipationOut,
    ResourceListOut,
    resource_out,
)
from ecotrack.services.participation.kinds import ResourceKind
from ecotrack.services.participation.lifecycle import ListFilters
from ecotrack.services.participation.outcomes import FailureKind, Outcome
from ecotrack.services.participation.service import ResourceService

FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    FailureKind.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.CONFLICT: status.HTTP_409_CONFLICT,
    FailureKind.CREATOR_CANNOT_JOIN: status.HTTP_400_BAD_REQUEST,
    FailureKind.NOT_ACTIVE: status.HTTP_400_BAD_REQUEST,
    FailureKind.ALREADY_JOINED: status.HTTP_409_CONFLICT,
    FailureKind.FULL: status.HTTP_409_CONFLICT,
    FailureKind.NOT_JOINED: status.HTTP_400_BAD_REQUEST,
    FailureKind.INVALID_CAPACITY: status.HTTP_400_BAD_REQUEST,
}


def unwrap_or_raise(outcome: Outcome) -> Any:
    """Valeur d’un succès, ou `HTTPException` portant le code métier de l’échec.

    Args:
        outcome (Outcome): Résultat de service.

    Returns:
        Any: `outcome.value`.

    Raises:
        HTTPException: Statut issu de `FAILURE_STATUS`, détail `{code, message, details?}`.
    """
    if outcome.ok:
        return outcome.value
    detail: dict[str, Any] = {"code": outcome.failure.value, "message": outcome.message}
    if outcome.details:
        detail["details"] = outcome.details
    raise HTTPException(status_code=FAILURE_STATUS[outcome.failure], detail=detail)


def _participation_out(p) -> ParticipationOut:
    return ParticipationOut(user_id=p.user_id, joined_at=p.joined_at)


def build_resource_router(kind: ResourceKind, *, prefix: str, tag: str) -> APIRouter:
    """Construit le routeur d’un type de ressource.

    Description:
        Mêmes routes pour chaque type ; seuls les payloads (création/mise à jour),
        la collection et les libellés changent. Les routes `/my/*` sont déclarées
        avant `/{id_or_slug}` pour ne pas être capturées par ce dernier.

    Args:
        kind (ResourceKind): Type de ressource.
        prefix (str): Préfixe d’URL (ex. "/events").
        tag (str): Tag OpenAPI.

    Returns:
        APIRouter: Routeur prêt à être inclus.
    """
    settings = get_settings()
    create_model = kind.create_model
    update_model = kind.update_model
    label = kind.name

    router = APIRouter(prefix=prefix, tags=[tag])

    def get_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> ResourceService:
        return ResourceService(db, kind)

    Service = Annotated[ResourceService, Depends(get_service)]
    ResourceId = Annotated[str, Path(description=f"Identifiant du {label} (ObjectId).")]

    @router.get(
        "",
        response_model=SuccessResponse[ResourceListOut],
        summary=f"Lister les {label}s",
        description=(
            "Liste paginée, sans le détail des participants.\n\n"
            "- Filtres : `status`, `category`, `search` (titre/description), `date_from`, `date_to`\n"
            "- Tri : `sort_by`, `order` (asc|desc)"
        ),
    )
    async def list_resources(
        service: Service,
        status_filter: Literal["active", "cancelled", "completed"] | None = Query(
            default=None, alias="status", description="Statut."
        ),
        category: str | None = Query(default=None, description="Catégorie exacte."),
        search: str | None = Query(default=None, max_length=100, description="Texte libre."),
        date_from: datetime | None = Query(default=None, description="Date minimale (incluse)."),
        date_to: datetime | None = Query(default=None, description="Date maximale (incluse)."),
        sort_by: str | None = Query(default=None, description="Champ de tri."),
        order: Literal["asc", "desc"] = Query(default="asc", description="Sens du tri."),
        page: int = Query(1, ge=1, description="Numéro de page (≥1)."),
        page_size: int = Query(
            settings.default_page_size, ge=1, le=settings.max_page_size, description="Taille de page."
        ),
    ):
        filters = ListFilters(
            status=status_filter,
            category=category,
            search=search,
            date_from=as_utc(date_from),
            date_to=as_utc(date_to),
            sort_by=sort_by,
            order=order,
        )
        result = await service.lifecycle.list_resources(filters, page=page, page_size=page_size)
        return SuccessResponse(
            data=ResourceListOut(
                items=[resource_out(r) for r in result.items],
                total=result.total,
                page=result.page,
                page_size=result.page_size,
                total_pages=result.total_pages,
            )
        )

    @router.get(
        "/my/created",
        response_model=SuccessResponse[CreatedListOut],
        summary=f"Mes {label}s créés",
        description="Ressources créées par l’utilisateur courant, avec compteurs par statut et total des participants actifs.",
    )
    async def my_created(user_id: CurrentUserId, service: Service):
        result = await service.lifecycle.created_by(user_id)
        return SuccessResponse(
            data=CreatedListOut(
                items=[resource_out(r, is_creator=True) for r in result.items],
                total=result.total,
                counts=result.counts,
                total_participants=result.total_participants,
            )
        )

    @router.get(
        "/my/joined",
        response_model=SuccessResponse[JoinedListOut],
        summary=f"Mes {label}s rejoints",
        description="Ressources où l’utilisateur courant est participant actif (`when` = upcoming|past|all).",
    )
    async def my_joined(
        user_id: CurrentUserId,
        service: Service,
        when: Literal["upcoming", "past", "all"] = Query(default="upcoming", description="Fenêtre temporelle."),
    ):
        result = await service.engine.joined_by(user_id, when=when)
        return SuccessResponse(
            data=JoinedListOut(
                items=[resource_out(r, is_joined=True) for r in result.items],
                total=result.total,
                upcoming=result.upcoming,
                past=result.past,
            )
        )

    @router.get(
        "/{id_or_slug}",
        response_model=SuccessResponse[dict[str, Any]],
        summary=f"Détail d’un {label}",
        description="Recherche par identifiant, puis par slug. Ajoute `is_creator`/`is_joined` pour un appelant authentifié.",
    )
    async def get_resource(
        id_or_slug: Annotated[str, Path(description="ObjectId ou slug.")],
        service: Service,
        user_id: OptionalUserId,
    ):
        view = unwrap_or_raise(await service.lifecycle.get(id_or_slug, user_id))
        return SuccessResponse(
            data=resource_out(
                view.resource,
                is_creator=view.is_creator,
                is_joined=view.is_joined,
                progress_percentage=view.progress_percentage,
            )
        )

    @router.post(
        "",
        status_code=status.HTTP_201_CREATED,
        response_model=SuccessResponse[dict[str, Any]],
        summary=f"Créer un {label}",
        description="Crée la ressource au statut `active`, sans participant ; slug dérivé du titre.",
    )
    async def create_resource(
        payload: Annotated[create_model, Body()],
        user_id: CurrentUserId,
        service: Service,
    ):
        resource = unwrap_or_raise(await service.lifecycle.create(payload, user_id))
        return SuccessResponse(
            data=resource_out(resource, is_creator=True), message=f"{label.capitalize()} created successfully"
        )

    @router.patch(
        "/{resource_id}",
        response_model=SuccessResponse[dict[str, Any]],
        summary=f"Modifier un {label}",
        description=(
            "Réservé au créateur.\n\n"
            "- Un nouveau titre régénère le slug\n"
            "- La capacité ne peut pas passer sous le nombre de participants actifs\n"
            "- Le statut ne quitte `active` que vers `cancelled` ou `completed`"
        ),
    )
    async def update_resource(
        resource_id: ResourceId,
        patch: Annotated[update_model, Body()],
        user_id: CurrentUserId,
        service: Service,
    ):
        resource = unwrap_or_raise(await service.lifecycle.update(resource_id, patch, user_id))
        return SuccessResponse(
            data=resource_out(resource, is_creator=True), message=f"{label.capitalize()} updated successfully"
        )

    @router.delete(
        "/{resource_id}",
        response_model=SuccessResponse[DeleteOut],
        summary=f"Supprimer ou annuler un {label}",
        description=(
            "Suppression définitive sans participant actif, sinon passage au statut `cancelled`. "
            "Une ressource déjà terminée avec des participants est conservée telle quelle."
        ),
    )
    async def delete_resource(resource_id: ResourceId, user_id: CurrentUserId, service: Service):
        result = unwrap_or_raise(await service.lifecycle.delete_or_cancel(resource_id, user_id))
        if result.deleted:
            message = f"{label.capitalize()} deleted"
        elif result.cancelled:
            message = f"{label.capitalize()} cancelled"
        else:
            message = f"{label.capitalize()} kept ({result.status})"
        data = DeleteOut(
            id=result.resource_id, deleted=result.deleted, cancelled=result.cancelled, status=result.status
        )
        return SuccessResponse(data=data, message=message)

    @router.post(
        "/{resource_id}/join",
        response_model=SuccessResponse[JoinOut],
        summary=f"Rejoindre un {label}",
        description="Inscription atomique : refusée au créateur, sur une ressource inactive ou pleine, ou en double.",
    )
    async def join_resource(resource_id: ResourceId, user_id: CurrentUserId, service: Service):
        result = unwrap_or_raise(await service.engine.join(resource_id, user_id))
        return SuccessResponse(
            data=JoinOut(
                resource=resource_out(result.resource, is_joined=True),
                participation=_participation_out(result.participation),
            ),
            message=f"Successfully joined {label}",
        )

    @router.post(
        "/{resource_id}/leave",
        response_model=SuccessResponse[dict[str, Any]],
        summary=f"Quitter un {label}",
        description="Passe la participation de l’appelant à `left` ; possible même si la ressource est annulée.",
    )
    async def leave_resource(resource_id: ResourceId, user_id: CurrentUserId, service: Service):
        resource = unwrap_or_raise(await service.engine.leave(resource_id, user_id))
        return SuccessResponse(data=resource_out(resource, is_joined=False), message=f"Successfully left {label}")

    @router.get(
        "/{resource_id}/participants",
        response_model=SuccessResponse[ParticipantsOut],
        summary=f"Participants d’un {label}",
        description="Le créateur obtient la liste détaillée ; les autres appelants, les seuls compteurs.",
    )
    async def list_participants(resource_id: ResourceId, service: Service, user_id: OptionalUserId):
        view = unwrap_or_raise(await service.engine.list_participants(resource_id, user_id))
        participants = None
        if view.participants is not None:
            participants = [_participation_out(p) for p in view.participants]
        return SuccessResponse(
            data=ParticipantsOut(
                total=view.total,
                capacity=view.capacity,
                spots_remaining=view.spots_remaining,
                participants=participants,
            )
        )

    return router
