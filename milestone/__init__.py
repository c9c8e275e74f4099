"""milestone/ -- Task board domain: task statuses and the tasks that hold them.

Layer rule: milestone/ imports stdlib, third-party libraries, core/ and
components/. Routes live in api/routes/v1/, not here.
"""
