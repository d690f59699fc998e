from fastapi import HTTPException, status


class CompetitionException(HTTPException):
    kind = "invalid_operation"

    def __init__(self, detail: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundError(CompetitionException):
    kind = "not_found"

    def __init__(self, detail: str):
        super().__init__(detail, status.HTTP_404_NOT_FOUND)


class ConflictError(CompetitionException):
    kind = "conflict"

    def __init__(self, detail: str):
        super().__init__(detail, status.HTTP_409_CONFLICT)


class DependencyError(CompetitionException):
    kind = "dependency"

    def __init__(self, detail: str):
        super().__init__(detail, status.HTTP_409_CONFLICT)


# Not found
class CompetitionNotFound(NotFoundError):
    def __init__(self):
        super().__init__("Competition not found")


class CityNotFound(NotFoundError):
    def __init__(self):
        super().__init__("City not found")


class CityNotInCompetition(NotFoundError):
    def __init__(self):
        super().__init__("City not associated with this competition")


class RoundNotFound(NotFoundError):
    def __init__(self):
        super().__init__("Round not found")


class ParticipationNotFound(NotFoundError):
    def __init__(self):
        super().__init__("Participation not found")


class RoundParticipationNotFound(NotFoundError):
    def __init__(self):
        super().__init__("Round participation not found")


class ResultNotFound(NotFoundError):
    def __init__(self):
        super().__init__("Result not found")


class UserNotFound(NotFoundError):
    def __init__(self):
        super().__init__("User not found")


class NotInRound(NotFoundError):
    def __init__(self):
        super().__init__("Participant not found in this round")


class NoNextRound(NotFoundError):
    def __init__(self):
        super().__init__("Next round does not exist. Please create it first.")


# Conflicts
class DuplicateFinale(ConflictError):
    def __init__(self, existing_name: str):
        super().__init__(
            f'A finale already exists for this city: "{existing_name}". Only one finale per city is allowed.'
        )


class DuplicateRound(ConflictError):
    def __init__(self, round_number: int):
        super().__init__(f"Round {round_number} already exists for this city")


class AlreadyInRound(ConflictError):
    def __init__(self):
        super().__init__("Participant is already in this round")


class AlreadyRegistered(ConflictError):
    def __init__(self):
        super().__init__("User already registered for this competition in this city")


class CityAlreadyExists(ConflictError):
    def __init__(self):
        super().__init__("City already exists")


class CityAlreadyAdded(ConflictError):
    def __init__(self):
        super().__init__("City already added to this competition")


class AlreadyFinished(ConflictError):
    def __init__(self):
        super().__init__("This city is already marked as finished. Reopen it first.")


# State machine
class InvalidTransition(CompetitionException):
    kind = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition from {current} to {target}")


class InvalidOperation(CompetitionException):
    def __init__(self, detail: str):
        super().__init__(detail)


class RegistrationClosed(InvalidOperation):
    def __init__(self, detail: str = "Registration is closed for this competition"):
        super().__init__(detail)


class NotFinale(InvalidOperation):
    def __init__(self):
        super().__init__("This is not a finale round")


class NotArchived(InvalidOperation):
    def __init__(self):
        super().__init__("Round is not archived")


class IncompleteRounds(InvalidOperation):
    def __init__(self, count: int):
        super().__init__(f"There are still {count} incomplete round(s). Complete them first.")


class NoFieldsToUpdate(InvalidOperation):
    def __init__(self):
        super().__init__("No fields to update")


class UploadTooLarge(InvalidOperation):
    def __init__(self, limit: int):
        super().__init__(f"Maximum {limit} rows allowed per upload")


class ResultLocked(CompetitionException):
    kind = "locked"

    def __init__(self):
        super().__init__("Result is locked and cannot be modified", status.HTTP_423_LOCKED)


# Dependencies
class HasParticipants(DependencyError):
    def __init__(self, what: str = "competition"):
        super().__init__(f"Cannot delete {what} with existing participants")


class HasRounds(DependencyError):
    def __init__(self):
        super().__init__("Cannot remove city with existing rounds")


class HasSubsequentRounds(DependencyError):
    def __init__(self):
        super().__init__("Cannot delete round with subsequent rounds. Delete later rounds first.")


class StoreFailure(CompetitionException):
    kind = "internal"

    def __init__(self):
        super().__init__("Internal storage error", status.HTTP_500_INTERNAL_SERVER_ERROR)
