# Business logic; every write goes through a service
