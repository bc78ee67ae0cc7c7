"""Membership plan catalogue."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import MembershipPlan, User
from aneti.errors import Forbidden, NotFound, ValidationError

logger = structlog.get_logger()

# Prices in cents (R$).
DEFAULT_PLANS: list[dict] = [
    {
        "name": "Público",
        "description": "Acesso básico à plataforma ANETI com recursos essenciais para networking profissional.",
        "price": 0,
        "features": [
            "Perfil profissional básico",
            "Visualização de membros",
            "Acesso aos grupos públicos",
            "Participação em discussões",
        ],
    },
    {
        "name": "Júnior",
        "description": "Para profissionais iniciantes em TI com até 3 anos de experiência.",
        "price": 2500,
        "features": [
            "Todos os recursos do Plano Público",
            "Mensagens diretas",
            "Acesso a grupos exclusivos",
            "Certificado de membro",
        ],
    },
    {
        "name": "Pleno",
        "description": "Para profissionais com experiência consolidada em TI (3-8 anos).",
        "price": 4900,
        "features": [
            "Todos os recursos do Plano Júnior",
            "Criação de grupos",
            "Publicação de artigos",
            "Acesso a pesquisas salariais",
        ],
    },
    {
        "name": "Sênior",
        "description": "Para profissionais experientes e líderes técnicos (8+ anos).",
        "price": 9900,
        "features": [
            "Todos os recursos do Plano Pleno",
            "Moderação de comunidades",
            "Acesso a relatórios exclusivos",
            "Programa de palestrantes",
        ],
    },
]


async def get_plan(db: AsyncSession, plan_id: int) -> MembershipPlan | None:
    result = await db.execute(select(MembershipPlan).where(MembershipPlan.id == plan_id))
    return result.scalar_one_or_none()


async def list_plans(db: AsyncSession, include_inactive: bool = False) -> list[MembershipPlan]:
    """Plans ordered by price, cheapest first."""
    query = select(MembershipPlan)
    if not include_inactive:
        query = query.where(MembershipPlan.is_active.is_(True))
    result = await db.execute(query.order_by(MembershipPlan.price, MembershipPlan.id))
    return list(result.scalars().all())


async def create_plan(
    db: AsyncSession,
    actor: User,
    name: str,
    price: int,
    description: str | None = None,
    features: list[str] | None = None,
) -> MembershipPlan:
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem criar planos")
    name = name.strip()
    if not name:
        raise ValidationError("Nome do plano é obrigatório")
    if price < 0:
        raise ValidationError("O preço não pode ser negativo")

    existing = await db.execute(select(MembershipPlan.id).where(MembershipPlan.name == name))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError(f"Já existe um plano chamado {name}")

    plan = MembershipPlan(
        name=name,
        description=description,
        price=price,
        features=list(features or []),
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(plan)
    await db.flush()
    logger.info("plan_created", plan_id=plan.id, name=name, actor_id=actor.id)
    return plan


async def toggle_plan(db: AsyncSession, actor: User, plan_id: int) -> MembershipPlan:
    """Flip ``is_active``. Members already on the plan keep it."""
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem alterar planos")
    plan = await get_plan(db, plan_id)
    if plan is None:
        raise NotFound(f"Plano {plan_id} não encontrado")
    plan.is_active = not plan.is_active
    await db.flush()
    logger.info("plan_toggled", plan_id=plan.id, is_active=plan.is_active, actor_id=actor.id)
    return plan


async def seed_plans(db: AsyncSession) -> int:
    """Insert the default plans that are missing by name. Returns how many were added."""
    result = await db.execute(select(MembershipPlan.name))
    existing = {row[0] for row in result}

    now = datetime.now(timezone.utc)
    added = 0
    for default in DEFAULT_PLANS:
        if default["name"] in existing:
            continue
        db.add(
            MembershipPlan(
                name=default["name"],
                description=default["description"],
                price=default["price"],
                features=list(default["features"]),
                is_active=True,
                created_at=now,
            )
        )
        added += 1

    if added:
        await db.flush()
        logger.info("plans_seeded", count=added)
    return added
