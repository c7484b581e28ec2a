"""County emergency management: triage, dispatch, beds, transfers and SHA claims."""
