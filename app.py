"""Web chat interface using Streamlit."""

import streamlit as st

from ragchat import ChatPipeline, ConversationManager, Role
from ragchat.config import config

DEFAULT_SUBJECT_ID = "streamlit-user"

config.setup_logging()
logger = config.get_logger(__name__)


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        defaults = {
            "pipeline": None,
            "conversation_manager": None,
            "subject_id": DEFAULT_SUBJECT_ID,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def reset_conversation() -> None:
        """Start a fresh conversation for the current subject."""
        st.session_state.conversation_manager = ConversationManager(
            st.session_state.pipeline, st.session_state.subject_id
        )

    @staticmethod
    def is_system_ready() -> bool:
        """Check if the system is properly initialized.

        Returns:
            bool: True if both pipeline and conversation_manager are initialized,
            False otherwise.
        """
        return (
            st.session_state.get("pipeline") is not None
            and st.session_state.get("conversation_manager") is not None
        )


def validate_configuration() -> bool:
    """Validate application configuration and show user feedback.

    Returns:
        bool: True if configuration is valid, False otherwise.
    """
    try:
        config.validate()
    except ValueError as e:
        st.error(f"Configuration Error: {e}")
        return False
    else:
        return True


def initialize_system() -> bool:
    """Initialize the pipeline and the conversation manager.

    Returns:
        bool: True if initialization succeeds, False otherwise.
    """
    try:
        with st.spinner("Initializing system..."):
            st.session_state.pipeline = ChatPipeline()
            SessionState.reset_conversation()

        logger.info("Chat pipeline initialized successfully")
        st.success("System initialized successfully!")

    except (ValueError, RuntimeError) as e:
        logger.exception("Failed to initialize system")
        st.error(f"Failed to initialize system: {e}")
        return False
    else:
        return True


def render_sidebar() -> None:
    """Render the sidebar with configuration and system status."""
    with st.sidebar:
        st.header("System Configuration")

        subject_id = st.text_input("User ID", value=st.session_state.subject_id)
        if subject_id and subject_id != st.session_state.subject_id:
            st.session_state.subject_id = subject_id
            if st.session_state.pipeline is not None:
                SessionState.reset_conversation()

        if (
            st.button("Initialize System", use_container_width=True)
            and validate_configuration()
            and initialize_system()
        ):
            st.rerun()

        st.divider()
        st.subheader("System Status")
        status = config.status()
        model_status = "Configured" if status["openai_api_key"] else "Mock responses"
        rag_status = "Enabled" if status["embedding_api_url"] else "Disabled"
        st.write(f"**Chat Model:** {model_status}")
        st.write(f"**RAG Service:** {rag_status}")
        if SessionState.is_system_ready():
            st.write("**System:** Ready")
        else:
            st.write("**System:** Not Initialized")

        st.divider()
        if SessionState.is_system_ready():
            st.subheader("Conversation")
            if st.button("Clear History", use_container_width=True):
                st.session_state.conversation_manager.clear_history()
                st.success("Conversation cleared!")
                st.rerun()


def render_conversation() -> None:
    """Render the stored turns oldest first."""
    manager = st.session_state.conversation_manager
    for turn in manager.conversation_history:
        author = "assistant" if turn.role is Role.ASSISTANT else "user"
        with st.chat_message(author):
            st.write(turn.content)

    if manager.last_reply is not None and manager.last_reply.used_fallback:
        st.caption(manager.last_reply.warning)


def render_chat_input() -> None:
    """Read a new message and route it through the pipeline."""
    message = st.chat_input("Type your message...")
    if not (message and message.strip()):
        return

    with st.spinner("Thinking..."):
        try:
            st.session_state.conversation_manager.send(message)
        except (ValueError, TypeError) as e:
            logger.exception("Message processing failed")
            st.error(f"Failed to process message: {e}")
            return
    st.rerun()


def main() -> None:
    """Main entry point for the Streamlit web application."""
    st.set_page_config(
        page_title="RAGChat",
        layout="wide",
    )

    SessionState.initialize()

    st.title("RAGChat")
    st.markdown("---")

    render_sidebar()

    if not SessionState.is_system_ready():
        st.info("Please initialize the system using the sidebar to get started.")
        return

    render_conversation()
    render_chat_input()


if __name__ == "__main__":
    main()
