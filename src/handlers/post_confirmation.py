"""
Cognito Post-Confirmation Lambda Trigger

Adds every newly confirmed user to the default group so their ID token
carries a cognito:groups claim from the first sign-in.

Trigger: Post Confirmation
Event: After a user confirms sign-up
"""

import logging
import os
from typing import Any, Dict

import boto3

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Post-Confirmation Lambda Trigger Handler

    Event structure:
    {
        "version": "1",
        "triggerSource": "PostConfirmation_ConfirmSignUp",
        "region": "us-east-1",
        "userPoolId": "us-east-1_EXAMPLE",
        "userName": "a1b2c3d4-...",
        "request": {"userAttributes": {"sub": "...", "email": "user@example.com"}},
        "response": {}
    }

    Args:
        event: Cognito Post Confirmation trigger event
        context: Lambda context

    Returns:
        event: Must return the event unmodified for Cognito to continue
    """
    group_name = os.environ.get("DEFAULT_GROUP", "player")
    user_pool_id = event.get("userPoolId")
    username = event.get("userName")

    if not user_pool_id or not username:
        logger.error("Missing userPoolId or userName in post-confirmation event")
        return event

    try:
        cognito = boto3.client("cognito-idp")
        cognito.admin_add_user_to_group(
            UserPoolId=user_pool_id,
            Username=username,
            GroupName=group_name,
        )
        logger.info(f"Added user {username} to group {group_name}")
    except Exception as e:
        # Don't block sign-up because the group could not be assigned
        logger.exception(f"Failed to add user {username} to group {group_name}: {str(e)}")

    # IMPORTANT: Must return the event for Cognito to continue
    return event
