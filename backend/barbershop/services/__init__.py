# Services package initialization
# Pure scheduling math lives in calendar_math/availability; the
# transactional operations are exposed by scheduling_service.SchedulingService
