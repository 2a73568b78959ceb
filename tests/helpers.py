from pydispatchx import action_type_of, create_action

increment = create_action("INC")
add = create_action("ADD", lambda amount: amount)
ignore = create_action("IGNORE")


def counter(state=0, action=None):
    kind = action_type_of(action)
    if kind == "INC":
        return state + 1
    if kind == "ADD":
        return state + action.payload
    return state


def boom_reducer(state, action):
    if action_type_of(action) == "BOOM":
        raise ValueError("boom")
    return counter(state, action)
