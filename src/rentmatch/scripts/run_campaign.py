"""
Script para correr (o re-correr) una campaña de targeting.

Uso:
    python -m rentmatch.scripts.run_campaign --agent-id 7 --name "Freshers 2026" --demographic students
    python -m rentmatch.scripts.run_campaign --agent-id 7 --name "Centro" --demographic professionals --property-id 12 --property-id 15
    python -m rentmatch.scripts.run_campaign --rerun 42
"""

import argparse
import asyncio
import logging
import sys

import structlog

from rentmatch.config import TARGET_DEMOGRAPHICS, get_settings
from rentmatch.exceptions import RentMatchError
from rentmatch.matching import TargetingOrchestrator

# Configurar logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    force=True,
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Corre una campaña de targeting inquilino-propiedad"
    )
    parser.add_argument("--agent-id", type=int, help="Agente dueño de la campaña")
    parser.add_argument("--name", help="Nombre de la campaña")
    parser.add_argument(
        "--demographic",
        choices=TARGET_DEMOGRAPHICS,
        default="students",
        help="Demografía objetivo",
    )
    parser.add_argument(
        "--property-id",
        type=int,
        action="append",
        default=[],
        help="ID de propiedad a incluir (repetible). Sin IDs: todas las del agente",
    )
    parser.add_argument(
        "--rerun",
        type=int,
        metavar="CAMPAIGN_ID",
        help="Re-ejecuta una campaña existente en lugar de crear una nueva",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Segundos máximos para el scoring",
    )
    return parser


async def run_campaign(args: argparse.Namespace):
    """Ejecuta la campaña pedida por línea de comandos."""
    orchestrator = TargetingOrchestrator()
    if args.rerun is not None:
        return await orchestrator.rerun_campaign(args.rerun, timeout=args.timeout)

    criteria = {
        "agent_id": args.agent_id,
        "name": args.name,
        "target_demographic": args.demographic,
        "property_ids": args.property_id,
    }
    return await orchestrator.run_campaign(criteria, timeout=args.timeout)


def main():
    """Entry point del script."""
    parser = build_parser()
    args = parser.parse_args()
    if args.rerun is None and (args.agent_id is None or not args.name):
        parser.error("--agent-id y --name son requeridos salvo con --rerun")

    try:
        campaign = asyncio.run(run_campaign(args))
        stats = campaign.run_stats

        logger.info(
            "Campaña lista",
            campaign_id=campaign.id,
            matched_tenants=len(campaign.matched_tenants),
            candidates_failed=stats.candidates_failed if stats else 0,
            pairs_failed=stats.pairs_failed if stats else 0,
            matches_failed=stats.matches_failed if stats else 0,
        )
        for matched in campaign.ranked_tenants():
            print(
                f"tenant={matched.tenant_id} best_score={matched.best_score} "
                f"properties={matched.recommended_property_ids}"
            )

        sys.exit(1 if stats and stats.has_failures else 0)

    except KeyboardInterrupt:
        logger.info("Campaña interrumpida por usuario")
        sys.exit(130)
    except RentMatchError as e:
        logger.error("Campaña abortada", error=str(e), operation=e.operation)
        sys.exit(1)
    except Exception as e:
        logger.error("Error fatal en campaña", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
