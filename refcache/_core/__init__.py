from refcache._core._spec import (
    Admission as Admission,
    AnyState as AnyState,
    FollowRedirect as FollowRedirect,
    FreshnessWindows as FreshnessWindows,
    GiveUp as GiveUp,
    Lookup as Lookup,
    NeedFetch as NeedFetch,
    Reject as Reject,
    ResolverOptions as ResolverOptions,
    Serve as Serve,
    State as State,
)
