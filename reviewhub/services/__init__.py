"""
Domain services.

Each service takes a SQLAlchemy Session and raises ReviewHubError
subclasses; the API layer maps those to HTTP responses.

- location_access: organization location/group access resolution
- platforms: Google, Yelp and Facebook OAuth adapters and review import
- review_sync / auto_reply: review import fan-out and unattended replies
- ai_service: reply drafting and insights over OpenAI or Anthropic
- sms / campaigns: Twilio delivery, plan quotas and campaigns
- notifications / email / team: owner notifications and team invitations
- analytics / competitors: reporting and Google Places competitor tracking
"""
