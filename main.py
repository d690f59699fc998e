from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.config import Settings, settings as default_settings
from core.exceptions import CompetitionException
from core.logging import logger, setup_logging
from db import Store

from services.events import CompletionEvents
from services.competition_lifecycle import CompetitionLifecycleController
from services.branch_service import BranchService
from services.registration_service import RegistrationService
from services.round_engine import RoundProgressionEngine
from services.score_ingestion import ScoreIngestionPipeline
from services.winner_selection import WinnerSelectionService
from services.result_service import ResultService
from services.standings import StandingsService


class App:
    """Every engine component wired around one Store"""

    def __init__(self, store: Store):
        self.store = store
        self.events = CompletionEvents()

        self.lifecycle = CompetitionLifecycleController(store, self.events)
        self.branches = BranchService(store)
        self.registration = RegistrationService(store)
        self.rounds = RoundProgressionEngine(store)
        self.scores = ScoreIngestionPipeline(store)
        self.winners = WinnerSelectionService(store, self.events, self.lifecycle)
        self.results = ResultService(store)
        self.standings = StandingsService(store)

    def startup(self, create_tables: bool = True) -> "App":
        setup_logging(self.store.settings.log_level)
        logger.info("Starting up competition engine...")
        self.store.init()
        if create_tables:
            self.store.create_all()
            logger.info("Database tables created")
        return self

    def shutdown(self):
        logger.info("Shutting down competition engine...")
        self.store.close()


def build_app(config: Settings = None, database_url: str = None) -> App:
    config = config or default_settings
    return App(Store(database_url=database_url, config=config))


def create_api(engine_app: App) -> FastAPI:
    """FastAPI shell owning the engine lifecycle; routers are mounted by the API layer"""
    api = FastAPI(title="Competition Engine", version="1.0.0")
    api.state.engine = engine_app

    @api.exception_handler(CompetitionException)
    async def competition_exception_handler(request: Request, exc: CompetitionException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "type": exc.kind}
        )

    @api.on_event("startup")
    async def startup_event():
        engine_app.startup()

    @api.on_event("shutdown")
    async def shutdown_event():
        engine_app.shutdown()

    return api


engine = build_app()
app = create_api(engine)


if __name__ == "__main__":
    engine.startup()
    logger.info("Store ready at %s", engine.store.engine.url.render_as_string(hide_password=True))
    engine.shutdown()
