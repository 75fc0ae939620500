from recipe_social.models.user import User
from recipe_social.models.follow import Follow
from recipe_social.models.conversation import Conversation, ConversationParticipant, RequestStatus
from recipe_social.models.message import Message, MessageReaction, MessageStatus, ReactionKind
from recipe_social.models.notification import Notification, NotificationType
from recipe_social.models.user_preference import UserPreference
from recipe_social.models.recipe import Recipe

__all__ = [
    "User",
    "Follow",
    "Conversation",
    "ConversationParticipant",
    "RequestStatus",
    "Message",
    "MessageReaction",
    "MessageStatus",
    "ReactionKind",
    "Notification",
    "NotificationType",
    "UserPreference",
    "Recipe"
]
