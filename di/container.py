from __future__ import annotations

from dependency_injector import containers, providers

from core.settings import SETTINGS
from infra.resources import ChatModelResource, DatabaseResource


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
        echo=SETTINGS.DATABASE.DB_ECHO,
    )

    # Chat model (OpenAI-compatible endpoint)
    chat_model = providers.Resource(
        ChatModelResource,
        model=SETTINGS.LLM.LLM_MODEL,
        api_key=SETTINGS.LLM.LLM_API_KEY.get_secret_value(),
        base_url=SETTINGS.LLM.LLM_BASE_URL,
        temperature=SETTINGS.LLM.LLM_TEMPERATURE,
        timeout=SETTINGS.LLM.LLM_TIMEOUT,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Application services - depends on infrastructure."""

    infrastructure = providers.DependenciesContainer()

    tools = providers.Callable("api.features.chat.tools.default_tools")

    chat_service = providers.Factory(
        "api.features.chat.service.ChatService",
        database=infrastructure.database,
        chat_model=infrastructure.chat_model,
        tools=tools,
        max_steps=SETTINGS.CHAT.MAX_STEPS,
        load_history=SETTINGS.CHAT.LOAD_HISTORY,
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()
    infrastructure = providers.DependenciesContainer()

    conversation_controller = providers.Factory(
        "api.features.conversation.controller.ConversationController",
    )

    chat_controller = providers.Factory(
        "api.features.chat.controller.ChatController",
        chat_service=services.chat_service,
        conversation_id_header=SETTINGS.CHAT.CONVERSATION_ID_HEADER,
    )

    user_controller = providers.Factory(
        "api.features.users.controller.UserController",
        database=infrastructure.database,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.main",
            "api.shared.db",
            "api.features.conversation.router",
            "api.features.chat.router",
            "api.features.users.router",
        ]
    )

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
    controllers = providers.Container(
        ControllerContainer, services=services, infrastructure=infrastructure
    )
