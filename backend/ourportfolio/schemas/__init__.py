# Schemas package init
# Pydantic request/response models; the service layer returns these directly.
