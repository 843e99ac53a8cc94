from portal.states.registration_states import RegistrationStates, SignInStates

__all__ = ["RegistrationStates", "SignInStates"]
