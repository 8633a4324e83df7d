"""Job lifecycle finite state machine.

One instance per analysis job.  The orchestrator drives it through the
three-phase protocol; illegal transitions (finalising before uploading,
uploading twice) raise ``TransitionNotAllowed``.  The FSM only validates
order -- it performs no I/O and has no ``on_enter`` callbacks.
"""

from __future__ import annotations

from statemachine import State, StateMachine


class JobLifecycleSM(StateMachine):
    """Six-state lifecycle of a remote analysis job.

    States:
        uninitialized -- No job exists yet.
        initiated     -- Job ID obtained from the service.
        uploading     -- Per-file analyse tasks dispatched.
        finalizing    -- Dispatcher idle; finalise request in flight.
        complete      -- Report locations received.
        failed        -- Initiate or finalise failed; the run is aborted.

    ``complete`` and ``failed`` are final: neither has outgoing transitions.
    """

    uninitialized = State("uninitialized", initial=True, value="uninitialized")
    initiated = State("initiated", value="initiated")
    uploading = State("uploading", value="uploading")
    finalizing = State("finalizing", value="finalizing")
    complete = State("complete", final=True, value="complete")
    failed = State("failed", final=True, value="failed")

    initiate = uninitialized.to(initiated)
    start_upload = initiated.to(uploading)
    start_finalize = uploading.to(finalizing)
    finish = finalizing.to(complete)
    fail = (
        uninitialized.to(failed)
        | initiated.to(failed)
        | uploading.to(failed)
        | finalizing.to(failed)
    )


def create_job_fsm() -> JobLifecycleSM:
    """Create a job FSM in the ``uninitialized`` state."""
    return JobLifecycleSM()
